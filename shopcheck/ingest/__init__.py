"""Proxy rotation, stealth browser control, crawling and link discovery."""
