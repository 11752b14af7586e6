"""django-filefield: File attachment attributes for Django models."""

__version__ = "0.1.0"

__all__ = [
    "FileAttachment",
    "AttachmentConfig",
    "attributes_for",
    "get_controllers",
    "processing",
    "ConfigurationError",
    "AttachmentValidationError",
]


def __getattr__(name):
    """Lazy imports to prevent AppRegistryNotReady errors."""
    if name in ("FileAttachment", "attributes_for", "get_controllers"):
        from .fields import FileAttachment, attributes_for, get_controllers

        return locals()[name]
    if name == "AttachmentConfig":
        from .config import AttachmentConfig

        return AttachmentConfig
    if name == "processing":
        from .lifecycle import processing

        return processing
    if name in ("ConfigurationError", "AttachmentValidationError"):
        from .exceptions import ConfigurationError, AttachmentValidationError

        return locals()[name]
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
