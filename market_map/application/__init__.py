"""Application services orchestrating core logic and persistence."""
