"""API and streaming schemas."""
