"""Immutable per-field attachment configuration."""

import re
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Callable, Optional, Union

from . import conf
from .exceptions import ConfigurationError
from .images import iter_sizes, parse_size


IMAGE_PATTERN = re.compile("image")


def _type_name(value) -> str:
    if isinstance(value, Mapping):
        inner = ", ".join(f"{key}: {type(item).__name__}" for key, item in value.items())
        return f"{type(value).__name__} {{{inner}}}"
    return type(value).__name__


def validate_type(name: str, value, expected: tuple, label: str):
    """Raise ConfigurationError unless value is an instance of expected."""
    if isinstance(value, bool) and bool not in expected:
        valid = False
    else:
        valid = isinstance(value, expected)
    if not valid:
        raise ConfigurationError(
            f"Expected {name} to be of type {label}, but got {_type_name(value)}"
        )


@dataclass(frozen=True)
class AttachmentConfig:
    """
    Options of one attachment field.

    Records are never mutated: ``bind()`` returns a copy carrying the
    model-derived folder, so one declaration can be bound to several models.

    Usage:
        config = AttachmentConfig(
            name="picture",
            mimetype=r"^image/",
            crop=True,
            folder_key="slug",
            sizes={"small": 64, "big": "150x350"},
        )
    """

    name: str
    mimetype: Union[str, re.Pattern]
    path_attribute: Optional[str] = None
    sizes: Optional[Mapping] = None
    crop: bool = False
    cleanup: bool = False
    public_path: Optional[str] = None
    base_path: Optional[str] = None
    staging_path: Optional[str] = None
    folder_key: Optional[str] = "id"
    group_by_attribute: bool = True
    wrong_type_message: Optional[str] = None
    max_length: int = conf.DEFAULT_MAX_LENGTH
    on_cleanup_error: Optional[Callable] = field(default=None, compare=False)
    folder: Optional[str] = None

    def __post_init__(self):
        validate_type("name", self.name, (str,), "str")
        validate_type("mimetype", self.mimetype, (str, re.Pattern), "str | Pattern")
        validate_type("path_attribute", self.path_attribute, (str, type(None)), "str | None")
        validate_type("sizes", self.sizes, (Mapping, type(None)), "Mapping | None")
        validate_type("crop", self.crop, (bool,), "bool")
        validate_type("cleanup", self.cleanup, (bool,), "bool")
        validate_type("folder_key", self.folder_key, (str, type(None)), "str | None")
        validate_type("group_by_attribute", self.group_by_attribute, (bool,), "bool")
        validate_type(
            "wrong_type_message", self.wrong_type_message, (str, type(None)), "str | None"
        )
        validate_type("max_length", self.max_length, (int,), "int")

        if not self.name:
            raise ConfigurationError("Attachment name must not be empty")
        if self.on_cleanup_error is not None and not callable(self.on_cleanup_error):
            raise ConfigurationError("on_cleanup_error must be callable")

        if (self.crop or self.sizes) and not self.accepts_images:
            raise ConfigurationError("Can't set crop or size on non-image mimetype")

        if self.sizes is not None:
            self._validate_sizes(self.sizes)
            object.__setattr__(self, "sizes", MappingProxyType(dict(self.sizes)))

        public_path = self.public_path or conf.get_public_path()
        base_path = (self.base_path or conf.get_base_path(public_path)).rstrip("/")
        object.__setattr__(self, "public_path", public_path)
        object.__setattr__(self, "base_path", base_path)
        object.__setattr__(
            self, "staging_path", self.staging_path or conf.get_staging_path(base_path)
        )
        object.__setattr__(
            self, "path_attribute", self.path_attribute or f"{self.name}_path"
        )
        object.__setattr__(
            self,
            "wrong_type_message",
            self.wrong_type_message or conf.DEFAULT_WRONG_TYPE_MESSAGE,
        )

    @staticmethod
    def _validate_sizes(sizes: Mapping):
        for name, descriptor in sizes.items():
            validate_type(f"sizes[{name!r}]", descriptor, (int, str, Mapping), "int | str | Mapping")
            if isinstance(descriptor, Mapping):
                if "size" not in descriptor:
                    raise ConfigurationError(f"sizes[{name!r}] is missing 'size'")
                validate_type(f"sizes[{name!r}]['size']", descriptor["size"], (int, str), "int | str")
                quality = descriptor.get("quality")
                if quality is not None:
                    validate_type(f"sizes[{name!r}]['quality']", quality, (int,), "int")
                    if not 1 <= quality <= 100:
                        raise ConfigurationError(
                            f"sizes[{name!r}]['quality'] must be between 1 and 100"
                        )
        for name, size, _quality in iter_sizes(sizes):
            spec = parse_size(size)
            if spec.width is None and spec.height is None:
                raise ConfigurationError(f"sizes[{name!r}] has no width or height: {size!r}")

    @property
    def crop_attribute(self) -> str:
        return f"{self.name}_crop"

    @property
    def mimetype_pattern(self) -> str:
        if isinstance(self.mimetype, re.Pattern):
            return self.mimetype.pattern
        return self.mimetype

    @property
    def accepts_images(self) -> bool:
        return bool(IMAGE_PATTERN.search(self.mimetype_pattern))

    def matches(self, mimetype: Optional[str]) -> bool:
        """True when the MIME type satisfies the configured matcher."""
        if not isinstance(mimetype, str):
            return False
        return re.search(self.mimetype, mimetype) is not None

    def bind(self, model_name: str) -> "AttachmentConfig":
        """Copy of this config with the folder for model_name cached on it."""
        from .paths import model_folder

        return replace(self, folder=model_folder(self, model_name))
