"""LLM-backed extraction and classification."""
