"""Exceptions raised while handling clipstash configuration."""


class ConfigError(Exception):
    """Raised when configuration data cannot be parsed or validated."""


class ConfigWriteError(ConfigError):
    """Raised when the configuration file cannot be written."""
