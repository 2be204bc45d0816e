"""Outbound HTTP adapters."""

from market_map.boundary.web.url_probe import SourceValidator

__all__ = ["SourceValidator"]
