"""State management errors."""


class StateError(Exception):
    """Base exception for cache repository operations."""
