"""Query parsing, search, ranking and AI services."""
