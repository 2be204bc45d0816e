"""HTTP API layer: routers and dependency factories."""
