"""Storage path planning for attachments.

Pure functions: nothing here touches the filesystem.

Layout:
    <base>/<models>[/<fields>][/<group key>]/<name>[_<suffix>][.ext]
"""

import os
import re
from typing import TYPE_CHECKING
from urllib.parse import urlsplit

from django.utils.crypto import get_random_string

from .exceptions import InvalidUrlError

if TYPE_CHECKING:
    from .config import AttachmentConfig


SUFFIX_LENGTH = 5
SUFFIX_CHARS = "abcdefghijklmnopqrstuvwxyz0123456789"

_ES_ENDINGS = ("s", "x", "z", "ch", "sh")

IRREGULAR_PLURALS = {
    "person": "people",
    "child": "children",
    "man": "men",
    "woman": "women",
    "mouse": "mice",
    "goose": "geese",
    "foot": "feet",
    "tooth": "teeth",
    "ox": "oxen",
    "leaf": "leaves",
    "life": "lives",
    "knife": "knives",
    "wife": "wives",
    "half": "halves",
    "sheep": "sheep",
    "fish": "fish",
    "series": "series",
    "species": "species",
    "news": "news",
    "data": "data",
    "media": "media",
    "criterion": "criteria",
    "analysis": "analyses",
    "index": "indices",
}


def pluralize(word: str) -> str:
    """
    Plural of an English noun, good enough for folder names.

    Irregular nouns are only recognised as whole words listed in
    IRREGULAR_PLURALS; compounds such as "salesperson" get the regular rules.
    """
    if not word:
        return word
    lower = word.lower()
    if lower in IRREGULAR_PLURALS:
        return IRREGULAR_PLURALS[lower]
    if lower.endswith(_ES_ENDINGS):
        return f"{word}es"
    if re.search(r"[^aeiou]y$", lower):
        return f"{word[:-1]}ies"
    return f"{word}s"


def model_folder(config: "AttachmentConfig", model_name: str) -> str:
    """Folder shared by all files of one attachment on one model."""
    parts = [config.base_path.rstrip("/"), pluralize(model_name.lower())]
    if config.group_by_attribute:
        parts.append(pluralize(config.name.lower()))
    return "/".join(parts)


def plan_instance_folder(config: "AttachmentConfig", model_name: str, instance) -> str:
    """Folder for one instance, grouped by the folder key value when enabled."""
    folder = config.folder or model_folder(config, model_name)
    if config.folder_key is None:
        return folder
    return f"{folder}/{getattr(instance, config.folder_key)}"


def unique_suffix() -> str:
    return get_random_string(SUFFIX_LENGTH, SUFFIX_CHARS)


def with_suffix(filename: str, suffix: str) -> str:
    """Insert ``_<suffix>`` before the extension of filename."""
    stem, ext = os.path.splitext(filename)
    return f"{stem}_{suffix}{ext}"


def plan_destination(config: "AttachmentConfig", model_name: str, instance, filename: str) -> str:
    """
    Final location of a file attached to instance.

    Ungrouped files (no folder key) share one folder, so their names get a
    random suffix to avoid collisions.
    """
    filename = os.path.basename(filename)
    if config.folder_key is None:
        filename = with_suffix(filename, unique_suffix())
    return f"{plan_instance_folder(config, model_name, instance)}/{filename}"


def filename_from_url(url: str) -> str:
    """Last path segment of a URL or filesystem path."""
    path = urlsplit(url).path if "://" in url else url
    name = path.rstrip("/").rsplit("/", 1)[-1] if path else ""
    if not name:
        raise InvalidUrlError(url, "Cannot derive a file name from URL")
    return name


def public_path(path: str, prefix: str) -> str:
    """
    Path relative to the public root, e.g. ``public/uploads/a.png`` -> ``/uploads/a.png``.

    Paths outside the public root are returned unchanged.
    """
    if prefix and path.startswith(prefix):
        return path[len(prefix):]
    return path


def from_public(path: str, prefix: str) -> str:
    """Inverse of public_path: ``/uploads/a.png`` -> ``public/uploads/a.png``."""
    return f"{prefix}{path}"


def derivative_path(path: str, name: str) -> str:
    """
    Path of the derivative called name: ``/a/pic.png`` -> ``/a/pic_small.png``.

    Only the last path segment is considered, so dots in folder names are
    left alone. Files without an extension get the suffix appended.
    """
    if not isinstance(path, str):
        raise TypeError(f"Path must be a string, but got {type(path).__name__}")
    head, tail = os.path.split(path)
    return os.path.join(head, with_suffix(tail, name))
