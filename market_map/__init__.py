"""Market Map: multi-turn market research assistant service."""
