"""
Attachment lifecycle: classify the pending value of a field, place the file,
validate it, clean up the previous one, persist the path and build
derivatives.

Transitions when a create or update hook fires:

    untouched / already processed  -> no-op
    local descriptor               -> validate -> relocate -> attach
    remote URL                     -> fetch -> validate -> relocate -> attach
    null                           -> cleanup (optional), clear path
"""
import logging
import os
import re
from collections.abc import Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Optional

from .exceptions import AttachmentError, AttachmentValidationError
from .fetch import RemoteFetcher
from .images import ImageProcessor
from .paths import derivative_path, from_public, public_path
from .relocate import relocate_for
from .values import (
    UNSET,
    FileState,
    LocalRef,
    classify,
    get_pending,
    pop_pending,
    to_local_ref,
    to_remote_ref,
)

logger = logging.getLogger(__name__)

IMAGE_MIMETYPE = re.compile("image")


class ProcessingContext:
    """
    Fields already handled during one operation.

    Processed instances are referenced until the context is dropped, so their
    ids cannot be reused by other instances in the meantime.
    """

    def __init__(self):
        self._processed = {}

    @staticmethod
    def key(instance, field: str) -> tuple:
        return (instance._meta.label, id(instance), field)

    def is_processed(self, instance, field: str) -> bool:
        return self.key(instance, field) in self._processed

    def mark(self, instance, field: str):
        self._processed[self.key(instance, field)] = instance

    def __len__(self):
        return len(self._processed)


_current_context: ContextVar[Optional[ProcessingContext]] = ContextVar(
    "filefield_processing_context", default=None
)


@contextmanager
def processing():
    """
    Share one ProcessingContext across several saves.

    Inside the block each attachment field of an instance is processed at
    most once, however many times its hooks fire.

    Usage:
        with transaction.atomic(), processing():
            photo.save()
            photo.save()  # file hooks are no-ops here
    """
    context = _current_context.get()
    if context is None:
        context = ProcessingContext()
    token = _current_context.set(context)
    try:
        yield context
    finally:
        _current_context.reset(token)


def current_context() -> ProcessingContext:
    """The active shared context, or a fresh one for a single hook call."""
    context = _current_context.get()
    return ProcessingContext() if context is None else context


def log_cleanup_error(path: str, error: OSError):
    """Default diagnostic sink for files that could not be removed."""
    logger.warning(f"Failed to remove {path}: {error}")


def accessor_value(config, stored: Optional[str]):
    """
    Value returned by the virtual attribute for a stored path.

    With sizes: ``{"original": path, "<size name>": derivative path, ...}``.
    Without: the stored path. ``None`` when nothing is stored.
    """
    if not stored:
        return None
    if not config.sizes:
        return stored
    value = {"original": stored}
    for name in config.sizes:
        value[name] = derivative_path(stored, name)
    return value


class AttachmentController:
    """
    Drives one attachment field of one model.

    Args:
        config: AttachmentConfig bound to model.
        model: Django model class.
        fetcher: RemoteFetcher used for URL values.
        processor: ImageProcessor used for derivatives.
    """

    def __init__(self, config, model, fetcher: RemoteFetcher = None, processor: ImageProcessor = None):
        self.config = config
        self.model = model
        self.model_name = model._meta.model_name
        self.fetcher = fetcher or RemoteFetcher()
        self.processor = processor or ImageProcessor()

    def __repr__(self):
        return f"<AttachmentController {self.model._meta.label}.{self.field}>"

    @property
    def field(self) -> str:
        return self.config.name

    @property
    def path_attribute(self) -> str:
        return self.config.path_attribute

    # --- Lifecycle hooks -------------------------------------------------

    def on_create(self, instance, context: ProcessingContext = None, **kwargs) -> Optional[str]:
        """After the row is inserted; the path is written with a second update."""
        return self._set_file(instance, context, persist=True)

    def on_before_update(self, instance, context: ProcessingContext = None, update_fields=None, **kwargs) -> Optional[str]:
        """
        Before an existing row is saved; the path is saved with the row.

        When the save is restricted to update_fields that exclude the path
        column, the path is written with a separate update.
        """
        persist = update_fields is not None and self.path_attribute not in update_fields
        return self._set_file(instance, context, persist=persist)

    def on_before_destroy(self, instance, **kwargs):
        self.cleanup(instance)

    # --- State machine ---------------------------------------------------

    def state_of(self, instance, context: ProcessingContext) -> FileState:
        if context.is_processed(instance, self.field):
            return FileState.ALREADY_PROCESSED
        value = get_pending(instance, self.field)
        if value is UNSET:
            return FileState.UNTOUCHED
        try:
            return classify(value)
        except TypeError as e:
            pop_pending(instance, self.field)
            raise self._validation_error(str(e), code="invalid_value") from e

    def _set_file(self, instance, context: Optional[ProcessingContext], persist: bool) -> Optional[str]:
        if context is None:
            context = current_context()
        state = self.state_of(instance, context)

        if state in (FileState.UNTOUCHED, FileState.ALREADY_PROCESSED):
            return None

        if state is FileState.NULL:
            self.clear(instance, context, persist=persist)
            return None

        value = get_pending(instance, self.field)
        try:
            if state is FileState.LOCAL_DESCRIPTOR:
                staged = to_local_ref(value)
            else:
                staged = self.fetcher.fetch(to_remote_ref(value).url, self.config.staging_path)
        except AttachmentError as e:
            raise self._validation_error(str(e), code="attachment_failed") from e

        self.validate(instance, staged)
        try:
            file = relocate_for(staged, instance, self.config, self.model_name)
        except AttachmentError as e:
            if state is FileState.REMOTE_URL:
                self.remove_file(staged.path)
            raise self._validation_error(str(e), code="attachment_failed") from e

        return self.attach(instance, file, context, persist=persist)

    def validate(self, instance, file: LocalRef):
        """Reject a file whose MIME type does not match, removing it."""
        if not self.config.matches(file.mimetype):
            self.remove_file(file.path)
            pop_pending(instance, self.field)
            raise self._validation_error(self.config.wrong_type_message, code="invalid_mimetype")

    def attach(self, instance, file: LocalRef, context: ProcessingContext = None, persist: bool = False) -> str:
        """
        Attach a file that is already in its final location.

        Derivatives are built before anything else changes. If that fails the
        new file is removed and the instance keeps its previous path and files.

        Returns:
            The stored, public-root-relative path.

        Raises:
            AttachmentValidationError: wrong MIME type or failed post-processing.
        """
        if context is None:
            context = current_context()
        self.validate(instance, file)

        stored = public_path(file.path, self.config.public_path)
        previous = getattr(instance, self.path_attribute)
        crop = pop_pending(instance, self.config.crop_attribute, None)

        if self.config.sizes and IMAGE_MIMETYPE.search(file.mimetype):
            if not (self.config.crop and isinstance(crop, Mapping)):
                crop = None
            try:
                self.processor.crop_then_resize_all(file.path, crop, self.config.sizes)
            except AttachmentError as e:
                # a same-name replacement already overwrote the previous original
                if stored != previous:
                    self.remove_file(file.path)
                pop_pending(instance, self.field)
                raise self._validation_error(str(e), code="processing_failed") from e

        if self.config.cleanup and previous and previous != stored:
            self.remove_stored(previous, keep=file.path)

        self._persist(instance, stored, persist)
        context.mark(instance, self.field)
        pop_pending(instance, self.field)
        logger.info(f"Attached {stored} to {instance._meta.label} {instance.pk} ({self.field})")
        return stored

    def clear(self, instance, context: ProcessingContext = None, persist: bool = False):
        """Remove the stored files (when cleanup is on) and clear the path."""
        if context is None:
            context = current_context()
        self.cleanup(instance)
        self._persist(instance, None, persist)
        context.mark(instance, self.field)
        pop_pending(instance, self.field)
        pop_pending(instance, self.config.crop_attribute, None)
        logger.info(f"Cleared {self.field} of {instance._meta.label} {instance.pk}")

    def _persist(self, instance, stored: Optional[str], persist: bool):
        setattr(instance, self.path_attribute, stored)
        if persist and instance.pk is not None:
            self.model._base_manager.filter(pk=instance.pk).update(
                **{self.path_attribute: stored}
            )

    # --- Cleanup ---------------------------------------------------------

    def cleanup(self, instance):
        """Remove the stored file and its derivatives. Never raises."""
        if not self.config.cleanup:
            return
        stored = getattr(instance, self.path_attribute)
        if stored:
            self.remove_stored(stored)

    def stored_files(self, stored: str) -> list[str]:
        """Filesystem paths of the original and every derivative of stored."""
        path = from_public(stored, self.config.public_path)
        files = [derivative_path(path, name) for name in (self.config.sizes or {})]
        files.append(path)
        return files

    def remove_stored(self, stored: str, keep: str = None):
        for path in self.stored_files(stored):
            if path != keep:
                self.remove_file(path)

    def remove_file(self, path: str):
        """Best-effort delete; failures other than a missing file go to the sink."""
        try:
            os.remove(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            sink = self.config.on_cleanup_error or log_cleanup_error
            try:
                sink(path, e)
            except Exception:
                logger.exception(f"Cleanup error sink failed for {path}")

    # --- Read path -------------------------------------------------------

    def value_for(self, instance):
        return accessor_value(self.config, getattr(instance, self.path_attribute))

    def rebuild_derivatives(self, instance) -> list[str]:
        """Regenerate derivatives of the stored original, without crop."""
        stored = getattr(instance, self.path_attribute)
        if not stored or not self.config.sizes:
            return []
        path = from_public(stored, self.config.public_path)
        return self.processor.crop_then_resize_all(path, None, self.config.sizes)

    def _validation_error(self, message: str, code: str = "invalid") -> AttachmentValidationError:
        return AttachmentValidationError(self.field, message, code=code)
