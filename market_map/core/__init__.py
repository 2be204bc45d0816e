"""Core domain logic: research agent, usernames, errors."""
