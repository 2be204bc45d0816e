"""Boundary adapters: database persistence and outbound HTTP probes."""
