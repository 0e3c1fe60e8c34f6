"""Crawl orchestration and reference-data reconciliation for e-commerce catalogs."""
