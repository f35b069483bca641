"""Nested ER diagram blocks."""
