"""Exception hierarchy for lightkit.

Errors coming from the database driver while a statement runs are not
wrapped: they surface as SQLAlchemy ``DBAPIError`` subclasses.
"""


class LightKitError(Exception):
    """Base class for every error raised by lightkit itself."""


class InvalidArgumentError(LightKitError, ValueError):
    """Bad builder input, raised before any SQL reaches the connection."""


class DatabaseConnectionError(LightKitError, RuntimeError):
    """The driver could not open or authenticate a connection."""


class ConfigurationError(LightKitError, RuntimeError):
    pass


class NotInitializedError(ConfigurationError):
    pass


class EnvFileError(ConfigurationError):
    pass


class EnvFileNotFoundError(EnvFileError, FileNotFoundError):
    pass
