"""Shared FastAPI helpers."""
