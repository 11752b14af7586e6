"""Values an attachment attribute can be set to."""

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum


class FileState(Enum):
    """State of an attachment field when a lifecycle hook fires."""

    UNTOUCHED = "untouched"
    ALREADY_PROCESSED = "already_processed"
    REMOTE_URL = "remote_url"
    LOCAL_DESCRIPTOR = "local_descriptor"
    NULL = "null"


@dataclass(frozen=True)
class RemoteRef:
    url: str


@dataclass(frozen=True)
class LocalRef:
    """A file already on local disk, e.g. a staged upload."""

    path: str
    mimetype: str


def is_local_descriptor(value) -> bool:
    if isinstance(value, LocalRef):
        return True
    if hasattr(value, "temporary_file_path") and hasattr(value, "content_type"):
        return True
    return (
        isinstance(value, Mapping)
        and isinstance(value.get("path"), str)
        and isinstance(value.get("mimetype"), str)
    )


def classify(value) -> FileState:
    """
    Classify a pending value.

    Raises:
        TypeError: value is none of the accepted inputs.
    """
    if value is None:
        return FileState.NULL
    if isinstance(value, (str, RemoteRef)):
        return FileState.REMOTE_URL
    if is_local_descriptor(value):
        return FileState.LOCAL_DESCRIPTOR
    raise TypeError(
        f"Expected a URL, a {{path, mimetype}} mapping or None, but got {type(value).__name__}"
    )


def to_remote_ref(value) -> RemoteRef:
    return value if isinstance(value, RemoteRef) else RemoteRef(url=value)


def to_local_ref(value) -> LocalRef:
    """Normalise a mapping, LocalRef or Django TemporaryUploadedFile."""
    if isinstance(value, LocalRef):
        return value
    if hasattr(value, "temporary_file_path"):
        return LocalRef(path=value.temporary_file_path(), mimetype=value.content_type)
    return LocalRef(path=value["path"], mimetype=value["mimetype"])


# Pending values live on the instance until a lifecycle hook consumes them.
PENDING_ATTRIBUTE = "_filefield_pending"

UNSET = object()


def set_pending(instance, name: str, value):
    instance.__dict__.setdefault(PENDING_ATTRIBUTE, {})[name] = value


def get_pending(instance, name: str, default=UNSET):
    return instance.__dict__.get(PENDING_ATTRIBUTE, {}).get(name, default)


def pop_pending(instance, name: str, default=UNSET):
    return instance.__dict__.get(PENDING_ATTRIBUTE, {}).pop(name, default)
