from __future__ import annotations


class CleanerError(Exception):
    pass


class ConfigError(CleanerError):
    """Setup could not complete; nothing useful can run."""


class RegistryError(CleanerError):
    pass


class NotFoundError(RegistryError):
    pass


class ConflictError(RegistryError):
    """Write rejected because the object changed since it was read."""


class RuntimeClientError(CleanerError):
    pass


class SubscriptionError(RuntimeClientError):
    """The container event stream could not be opened or was lost."""


class AllocatorError(CleanerError):
    pass
