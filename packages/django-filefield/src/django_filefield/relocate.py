"""Move staged files into their planned location."""
import logging
import os
import shutil

from .exceptions import MoveError
from .paths import plan_destination
from .values import LocalRef

logger = logging.getLogger(__name__)


def relocate(file: LocalRef, destination: str) -> LocalRef:
    """
    Move file to destination, creating the destination directory if needed.

    Returns:
        A new LocalRef pointing at destination with the same mimetype.
    """
    if not os.path.isfile(file.path):
        raise MoveError(file.path, destination, "source file does not exist")

    try:
        os.makedirs(os.path.dirname(destination) or ".", exist_ok=True)
    except OSError as e:
        raise MoveError(file.path, destination, f"cannot create directory: {e}") from e

    try:
        shutil.move(file.path, destination)
    except OSError as e:
        raise MoveError(file.path, destination, str(e)) from e

    logger.debug(f"Moved {file.path} to {destination}")
    return LocalRef(path=destination, mimetype=file.mimetype)


def relocate_for(file: LocalRef, instance, config, model_name: str) -> LocalRef:
    """Move file into the folder planned for instance."""
    destination = plan_destination(config, model_name, instance, file.path)
    return relocate(file, destination)
