"""Image post-processing: crop geometry and resized derivatives."""
import logging
import os
import re
from collections.abc import Mapping
from concurrent.futures import ThreadPoolExecutor, wait
from numbers import Real
from typing import Iterator, NamedTuple, Optional

from PIL import Image

from . import conf
from .exceptions import ProcessingError
from .paths import derivative_path

logger = logging.getLogger(__name__)

SIZE_PATTERN = re.compile(r"(\d+)?x?(\d+)?(.+)?")

# Formats that cannot store an alpha channel
RGB_ONLY_FORMATS = {"JPEG", "BMP"}


class ImageSize(NamedTuple):
    width: int
    height: int


class SizeSpec(NamedTuple):
    """Parsed ``"<W>x<H><modifiers>"``; a missing axis scales proportionally."""

    width: Optional[int]
    height: Optional[int]
    modifiers: Optional[str]


def parse_size(value) -> SizeSpec:
    """
    Parse a size descriptor.

    Examples:
        parse_size(64)          -> SizeSpec(64, None, None)
        parse_size("x300")      -> SizeSpec(None, 300, None)
        parse_size("150x350!")  -> SizeSpec(150, 350, "!")
    """
    match = SIZE_PATTERN.match(str(value))
    width, height, modifiers = match.groups()
    return SizeSpec(
        int(width) if width else None,
        int(height) if height else None,
        modifiers,
    )


def iter_sizes(sizes: Mapping) -> Iterator[tuple]:
    """Yield ``(name, size, quality)`` for every derivative descriptor."""
    for name, descriptor in sizes.items():
        if isinstance(descriptor, Mapping):
            quality = descriptor.get("quality") or conf.get_default_quality()
            yield name, descriptor["size"], quality
        else:
            yield name, descriptor, conf.get_default_quality()


def _fraction(value, default: float) -> float:
    if isinstance(value, bool) or not isinstance(value, Real):
        return default
    return min(max(float(value), 0.0), 1.0)


def crop_box(crop: Mapping, width: int, height: int) -> tuple[int, int, int, int]:
    """
    Convert a percentage crop ``{x, y, width, height}`` to a pixel box.

    All values are fractions of the source size. Width and height default
    to 1 and x/y to 0 when absent or not numeric. Returns the
    ``(left, top, right, bottom)`` box clamped to the image.
    """
    left = min(round(width * _fraction(crop.get("x"), 0.0)), width - 1)
    top = min(round(height * _fraction(crop.get("y"), 0.0)), height - 1)
    right = min(width, left + round(width * _fraction(crop.get("width"), 1.0)))
    bottom = min(height, top + round(height * _fraction(crop.get("height"), 1.0)))
    return left, top, max(right, left + 1), max(bottom, top + 1)


def target_size(source: ImageSize, spec: SizeSpec) -> ImageSize:
    """
    Output dimensions of resizing source according to spec.

    Without modifiers the image is fitted inside the box keeping its aspect
    ratio. Modifiers: ``!`` ignores the aspect ratio, ``^`` fills the box,
    ``>`` only shrinks and ``<`` only enlarges. Unknown modifiers are ignored.
    """
    modifiers = spec.modifiers or ""
    width, height = spec.width, spec.height
    if width is None and height is None:
        return source

    if "!" in modifiers and width and height:
        result = ImageSize(width, height)
    else:
        scales = []
        if width:
            scales.append(width / source.width)
        if height:
            scales.append(height / source.height)
        scale = max(scales) if "^" in modifiers else min(scales)
        result = ImageSize(
            max(1, round(source.width * scale)),
            max(1, round(source.height * scale)),
        )

    larger = result.width > source.width or result.height > source.height
    if ">" in modifiers and larger:
        return source
    if "<" in modifiers and not larger:
        return source
    return result


def _prepare_for_format(image: Image.Image, path: str) -> Image.Image:
    extension = os.path.splitext(path)[1].lower()
    image_format = Image.registered_extensions().get(extension)
    if image_format in RGB_ONLY_FORMATS and image.mode not in ("RGB", "L"):
        return image.convert("RGB")
    return image


class ImageProcessor:
    """Crop and resize images with Pillow."""

    def __init__(self, max_workers: int = None):
        self.max_workers = max_workers

    def measure(self, path: str) -> ImageSize:
        try:
            with Image.open(path) as image:
                return ImageSize(*image.size)
        except (OSError, ValueError) as e:
            raise ProcessingError(path, str(e)) from e

    def write_derivative(self, image: Image.Image, path: str, name: str, size, quality: int) -> str:
        """Resize a copy of image and save it as the derivative called name."""
        filename = derivative_path(path, name)
        spec = parse_size(size)
        width, height = target_size(ImageSize(*image.size), spec)
        resized = image.resize((width, height), Image.LANCZOS)
        resized = _prepare_for_format(resized, filename)
        resized.save(filename, quality=quality)
        logger.debug(f"Wrote derivative {filename} ({width}x{height}, quality {quality})")
        return filename

    def crop_then_resize_all(self, path: str, crop: Optional[Mapping], sizes: Mapping) -> list[str]:
        """
        Write every derivative of the image at path.

        The crop, when given, is applied in memory; the original file is left
        untouched. Derivatives are written concurrently. If any write fails
        the derivatives that were written are removed and ProcessingError is
        raised.

        Returns:
            Derivative paths in the order of sizes.
        """
        try:
            with Image.open(path) as source:
                if crop:
                    box = crop_box(crop, *source.size)
                    logger.debug(f"Cropping {path} to {box}")
                    image = source.crop(box)
                else:
                    image = source.copy()
        except (OSError, ValueError) as e:
            raise ProcessingError(path, str(e)) from e

        descriptors = list(iter_sizes(sizes))
        workers = self.max_workers or conf.get_resize_workers(len(descriptors))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [
                executor.submit(self.write_derivative, image.copy(), path, name, size, quality)
                for name, size, quality in descriptors
            ]
            wait(futures)

        written, errors = [], []
        for (name, _size, _quality), future in zip(descriptors, futures):
            error = future.exception()
            if error is None:
                written.append(future.result())
            else:
                errors.append((name, error))

        if errors:
            for filename in written:
                try:
                    os.remove(filename)
                except OSError as e:
                    logger.warning(f"Failed to remove derivative {filename}: {e}")
            name, error = errors[0]
            logger.warning(f"Failed to generate {name} derivative of {path}: {error}")
            raise ProcessingError(path, f"derivative {name!r} failed: {error}") from error

        return written
