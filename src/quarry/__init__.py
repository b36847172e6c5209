"""Quarry: retrieval core for a documentation knowledge base."""
