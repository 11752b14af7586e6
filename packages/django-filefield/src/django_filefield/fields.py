"""
Django model glue for attachment fields.

Declare an attachment in a model body:

    class User(models.Model):
        name = models.CharField(max_length=100)
        picture = FileAttachment(
            mimetype=r"^image/",
            crop=True,
            folder_key="slug",
            sizes={"small": 64, "big": "150x350"},
        )

This adds three attributes to the model:

    picture       virtual accessor; assign a URL, {"path", "mimetype"} or None
    picture_path  CharField holding the stored public path
    picture_crop  virtual crop input {x, y, width, height} (only with crop=True)

and connects post_save / pre_save / pre_delete receivers:

    User.objects.create(picture="http://example.com/somepic.jpg")
    User.objects.create(picture={"path": "/tmp/somepic.jpg", "mimetype": "image/jpeg"})
"""
import inspect
import logging

from django.core.exceptions import FieldDoesNotExist
from django.db import models
from django.db.models.signals import post_save, pre_delete, pre_save

from .config import AttachmentConfig
from .exceptions import ConfigurationError
from .lifecycle import AttachmentController, accessor_value
from .values import UNSET, get_pending, set_pending

logger = logging.getLogger(__name__)

# model class -> {attachment name: controller}
_registry: dict = {}


def get_controllers(model) -> dict:
    """Controllers of every attachment registered on model, keyed by name."""
    return dict(_registry.get(model, {}))


def iter_controllers():
    for controllers in _registry.values():
        yield from controllers.values()


def _virtual_property(config: AttachmentConfig) -> property:
    path_attribute = config.path_attribute
    name = config.name

    def getter(instance):
        return accessor_value(config, getattr(instance, path_attribute))

    def setter(instance, value):
        set_pending(instance, name, value)

    return property(getter, setter, doc=f"Stored path(s) of the {name} attachment.")


def _crop_property(config: AttachmentConfig) -> property:
    crop_attribute = config.crop_attribute

    def getter(instance):
        return get_pending(instance, crop_attribute, None)

    def setter(instance, value):
        set_pending(instance, crop_attribute, value)

    return property(getter, setter, doc=f"Pending crop of the {config.name} attachment.")


def attributes_for(config: AttachmentConfig) -> dict:
    """
    Model attributes an attachment needs, keyed by attribute name.

    The path column is a nullable CharField; the accessor and the crop input
    are plain properties, so they are accepted as model constructor kwargs.
    """
    attrs = {
        config.name: _virtual_property(config),
        config.path_attribute: models.CharField(
            max_length=config.max_length,
            null=True,
            blank=True,
        ),
    }
    if config.crop:
        attrs[config.crop_attribute] = _crop_property(config)
    return attrs


class FileAttachment:
    """
    Declarative attachment field.

    Args:
        virtual_attribute: Name of the accessor. Taken from the model
            attribute name when declared in a model body.
        mimetype: Allowed MIME type, a string or compiled pattern searched
            in the file's type. Example: r"^image/"
        path_attribute: Column storing the path. Defaults to "<name>_path".
        sizes: Derivatives as {name: size}; a size is a width, a
            "<W>x<H><modifiers>" string or {"size": ..., "quality": int}.
            Images only.
        crop: Add a "<name>_crop" input for percentage crops. Images only.
        base_path: Storage root. Defaults to FILEFIELD_BASE_PATH or
            "<public_path>/uploads".
        public_path: Prefix not stored in the database. Defaults to
            FILEFIELD_PUBLIC_PATH or "public".
        staging_path: Download directory for URLs.
        folder_key: Attribute grouping files per instance; None puts all
            files in one folder with a random suffix.
        group_by_attribute: Add a folder per attachment name.
        cleanup: Delete old files on replacement, clearing and deletion.
        wrong_type_message: Validation message for rejected MIME types.
        on_cleanup_error: Callable(path, error) receiving failed deletions.
        fetcher: RemoteFetcher override.
        processor: ImageProcessor override.
    """

    def __init__(self, virtual_attribute: str = None, *, fetcher=None, processor=None, **options):
        self.options = options
        self.fetcher = fetcher
        self.processor = processor
        self._config = None
        if "mimetype" not in options:
            raise ConfigurationError("FileAttachment requires a mimetype")
        if virtual_attribute is not None:
            self._config = AttachmentConfig(name=virtual_attribute, **options)

    @property
    def config(self) -> AttachmentConfig:
        if self._config is None:
            raise ConfigurationError(
                "FileAttachment has no name yet; pass virtual_attribute or declare it on a model"
            )
        return self._config

    @property
    def attrs(self) -> dict:
        return attributes_for(self.config)

    def contribute_to_class(self, cls, name):
        """Called by Django when the attachment is declared in a model body."""
        if self._config is None:
            self._config = AttachmentConfig(name=name, **self.options)
        elif self._config.name != name:
            raise ConfigurationError(
                f"FileAttachment '{self._config.name}' cannot be assigned to '{name}'"
            )
        self._add_attrs_to(cls)
        self._connect(cls)

    def add_to(self, model):
        """Add the attributes and hooks to an existing model class."""
        self._add_attrs_to(model)
        self.add_hooks_to(model)

    def add_hooks_to(self, model) -> AttachmentController:
        """Connect lifecycle hooks after checking model has the attributes."""
        config = self.config
        for attribute in self._virtual_attributes():
            if not isinstance(inspect.getattr_static(model, attribute, None), property):
                raise ConfigurationError(
                    f"Can't find {attribute} in {model.__name__}'s attributes"
                )
        self._check_field(model, config.path_attribute)
        if config.folder_key not in (None, "pk"):
            self._check_field(model, config.folder_key)
        return self._connect(model)

    def _virtual_attributes(self) -> list:
        attributes = [self.config.name]
        if self.config.crop:
            attributes.append(self.config.crop_attribute)
        return attributes

    @staticmethod
    def _check_field(model, name):
        try:
            model._meta.get_field(name)
        except FieldDoesNotExist as e:
            raise ConfigurationError(
                f"Can't find {name} in {model.__name__}'s attributes"
            ) from e

    def _add_attrs_to(self, model):
        for name, value in attributes_for(self.config).items():
            model.add_to_class(name, value)

    def _connect(self, model) -> AttachmentController:
        if model._meta.abstract:
            raise ConfigurationError(
                f"Cannot add attachment {self.config.name} to abstract model {model.__name__}"
            )

        controller = AttachmentController(
            self.config.bind(model._meta.model_name),
            model,
            fetcher=self.fetcher,
            processor=self.processor,
        )
        _registry.setdefault(model, {})[self.config.name] = controller

        uid = f"django_filefield:{model._meta.label}:{self.config.name}"
        for signal in (post_save, pre_save, pre_delete):
            signal.disconnect(sender=model, dispatch_uid=uid)
        post_save.connect(_post_save_receiver(controller), sender=model, weak=False, dispatch_uid=uid)
        pre_save.connect(_pre_save_receiver(controller), sender=model, weak=False, dispatch_uid=uid)
        pre_delete.connect(_pre_delete_receiver(controller), sender=model, weak=False, dispatch_uid=uid)
        logger.debug(f"Registered attachment {controller!r}")
        return controller


def _post_save_receiver(controller: AttachmentController):
    def receiver(sender, instance, created, raw=False, **kwargs):
        if raw:
            return
        # A save that inserted without Django flagging it as created (explicit
        # pk) still has its pending value here, so it is handled the same way.
        if created or get_pending(instance, controller.field) is not UNSET:
            controller.on_create(instance)
    return receiver


def _pre_save_receiver(controller: AttachmentController):
    def receiver(sender, instance, raw=False, update_fields=None, **kwargs):
        if raw or instance._state.adding:
            return
        controller.on_before_update(instance, update_fields=update_fields)
    return receiver


def _pre_delete_receiver(controller: AttachmentController):
    def receiver(sender, instance, **kwargs):
        controller.on_before_destroy(instance)
    return receiver
