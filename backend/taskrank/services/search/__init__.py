"""Deterministic query understanding: term recognition, time context, keywords, filtering."""
