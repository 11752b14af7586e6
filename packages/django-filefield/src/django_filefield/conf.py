"""Django File Field configuration.

All settings can be overridden in your Django settings.py.

Example:
    # settings.py
    FILEFIELD_PUBLIC_PATH = 'public'
    FILEFIELD_BASE_PATH = 'public/uploads'
    FILEFIELD_DOWNLOAD_TIMEOUT = 30.0
"""

from django.conf import settings


DEFAULT_PUBLIC_PATH = 'public'

DEFAULT_QUALITY = 100

DEFAULT_WRONG_TYPE_MESSAGE = "Wrong file's MIME type"

# Length of the persisted path column
DEFAULT_MAX_LENGTH = 1234

# Upper bound for derivative writer threads when FILEFIELD_RESIZE_WORKERS is unset
MAX_RESIZE_WORKERS = 8


def get_setting(name: str, default=None):
    """Get a setting with FILEFIELD_ prefix."""
    return getattr(settings, f"FILEFIELD_{name}", default)


def get_public_path() -> str:
    return get_setting("PUBLIC_PATH", DEFAULT_PUBLIC_PATH)


def get_base_path(public_path: str = None) -> str:
    """Storage root for processed files, ``<public path>/uploads`` by default."""
    base_path = get_setting("BASE_PATH")
    if base_path:
        return base_path
    return f"{public_path or get_public_path()}/uploads"


def get_staging_path(base_path: str) -> str:
    """Directory where remote files are downloaded before relocation."""
    return get_setting("STAGING_PATH") or f"{base_path.rstrip('/')}/tmp"


def get_download_timeout():
    """httpx timeout for downloads. None waits indefinitely."""
    return get_setting("DOWNLOAD_TIMEOUT", None)


def get_resize_workers(derivative_count: int) -> int:
    workers = get_setting("RESIZE_WORKERS")
    if workers:
        return workers
    return max(1, min(derivative_count, MAX_RESIZE_WORKERS))


def get_default_quality() -> int:
    return get_setting("DEFAULT_QUALITY", DEFAULT_QUALITY)


# =============================================================================
# DEFAULT SETTINGS REFERENCE
# =============================================================================

# FILEFIELD_PUBLIC_PATH = 'public'        # Prefix stripped from stored paths
# FILEFIELD_BASE_PATH = 'public/uploads'  # Root of the storage layout
# FILEFIELD_STAGING_PATH = 'public/uploads/tmp'  # Download staging directory
# FILEFIELD_DOWNLOAD_TIMEOUT = None       # Seconds, None = no timeout
# FILEFIELD_RESIZE_WORKERS = None         # Threads for derivative writes
# FILEFIELD_DEFAULT_QUALITY = 100         # Quality for derivatives
