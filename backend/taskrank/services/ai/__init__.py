"""
AI services package.

The completion service only interprets queries and chooses among candidates
that deterministic code already filtered and ranked. Every AI stage has a
deterministic fallback; nothing here computes dates or scores.
"""
