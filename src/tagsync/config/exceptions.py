"""Errors raised while reading tagsync settings."""


class ConfigError(Exception):
    """Raised when the configuration file or an override is invalid."""
