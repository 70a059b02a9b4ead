"""Declarative base and engine lifecycle."""
