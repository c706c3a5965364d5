# vmimport/core/__init__.py
from .exceptions import (
    CleanupErrors,
    ConfigError,
    ConflictError,
    NotFoundError,
    ProviderError,
    VmImportError,
    is_transient,
)
from .logger import Log

__all__ = [
    "CleanupErrors",
    "ConfigError",
    "ConflictError",
    "NotFoundError",
    "ProviderError",
    "VmImportError",
    "is_transient",
    "Log",
]
