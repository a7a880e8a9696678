"""Service-side helpers."""
