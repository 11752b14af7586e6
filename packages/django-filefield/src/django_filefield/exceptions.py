"""Exceptions for django-filefield."""

from django.core.exceptions import ImproperlyConfigured, ValidationError


class FileFieldError(Exception):
    """Base exception for file field errors."""
    pass


class ConfigurationError(FileFieldError, ImproperlyConfigured):
    """Raised at setup time for invalid options or missing model attributes."""
    pass


class AttachmentError(FileFieldError):
    """Base exception for I/O failures while attaching a file."""
    pass


class InvalidUrlError(AttachmentError):
    """Raised when a remote reference is not a usable http(s) URL."""

    def __init__(self, url, reason: str = None):
        self.url = url
        self.reason = reason or "Invalid URL"
        super().__init__(f'{self.reason}: "{url}"')


class DownloadError(AttachmentError):
    """Raised when a remote resource cannot be downloaded."""

    def __init__(self, url: str, status_code: int = None, reason: str = ""):
        self.url = url
        self.status_code = status_code
        self.reason = reason
        if status_code is not None:
            message = (
                f'Can\'t download resource: "{url}" responded with '
                f'"{status_code}: {reason}"'
            )
        else:
            message = f'Can\'t download resource: "{url}": {reason}'
        super().__init__(message)


class MoveError(AttachmentError):
    """Raised when a staged file cannot be moved into place."""

    def __init__(self, source: str, destination: str, reason: str):
        self.source = source
        self.destination = destination
        self.reason = reason
        super().__init__(f"Cannot move {source} to {destination}: {reason}")


class ProcessingError(AttachmentError):
    """Raised when an image cannot be measured, cropped or resized."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot process image {path}: {reason}")


class AttachmentValidationError(ValidationError):
    """
    Field-scoped validation error for an attachment.

    Every failure of the attach chain reaches the caller as this error, so
    ``error.message_dict`` is always ``{field: [message]}``.
    """

    def __init__(self, field: str, message: str, code: str = "invalid"):
        self.field = field
        self.code = code
        super().__init__({field: [ValidationError(message, code=code)]})
