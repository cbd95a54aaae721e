from __future__ import annotations


class ConfigurationError(ValueError):
    """Invalid block protocol, stimulus pool or runtime settings.

    Raised at startup; a session cannot be run with a bad configuration.
    """


class EmptyPoolError(ConfigurationError):
    """No stimulus in the pool matches the requested categories."""
