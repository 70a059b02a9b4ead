"""Shared infrastructure: logging, errors, persistence helpers, identity and rate limiting."""
