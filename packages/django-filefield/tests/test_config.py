"""Tests for AttachmentConfig validation and defaults."""
import dataclasses
import re

import pytest
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

from django_filefield.config import AttachmentConfig
from django_filefield.exceptions import ConfigurationError


class TestDefaults:
    """Test suite for derived option values."""

    def test_derived_attribute_names(self):
        config = AttachmentConfig(name="pic", mimetype="image")
        assert config.path_attribute == "pic_path"
        assert config.crop_attribute == "pic_crop"

    def test_custom_path_attribute(self):
        config = AttachmentConfig(name="pic", mimetype="image", path_attribute="picture")
        assert config.path_attribute == "picture"

    def test_paths_from_settings(self):
        """Public path comes from FILEFIELD_PUBLIC_PATH."""
        config = AttachmentConfig(name="pic", mimetype="image")
        public = settings.FILEFIELD_PUBLIC_PATH
        assert config.public_path == public
        assert config.base_path == f"{public}/uploads"
        assert config.staging_path == f"{public}/uploads/tmp"

    def test_base_path_setting(self, settings):
        settings.FILEFIELD_BASE_PATH = "var/files/"
        config = AttachmentConfig(name="pic", mimetype="image", public_path="var")
        assert config.base_path == "var/files"

    def test_option_defaults(self):
        config = AttachmentConfig(name="pic", mimetype="image")
        assert config.folder_key == "id"
        assert config.group_by_attribute is True
        assert config.cleanup is False
        assert config.crop is False
        assert config.sizes is None
        assert config.wrong_type_message == "Wrong file's MIME type"
        assert config.max_length == 1234


class TestValidation:
    """Test suite for option validation."""

    @pytest.mark.parametrize("options", [
        {"name": 5, "mimetype": "image"},
        {"name": "pic", "mimetype": 5},
        {"name": "pic", "mimetype": "image", "crop": "yes"},
        {"name": "pic", "mimetype": "image", "cleanup": 1},
        {"name": "pic", "mimetype": "image", "sizes": [64]},
        {"name": "pic", "mimetype": "image", "folder_key": 3},
        {"name": "pic", "mimetype": "image", "path_attribute": ["a"]},
    ])
    def test_wrong_types_raise(self, options):
        with pytest.raises(ConfigurationError):
            AttachmentConfig(**options)

    def test_type_error_message_names_option(self):
        with pytest.raises(ConfigurationError) as exc_info:
            AttachmentConfig(name="pic", mimetype="image", crop="yes")
        assert "Expected crop to be of type bool, but got str" in str(exc_info.value)

    def test_configuration_error_is_improperly_configured(self):
        with pytest.raises(ImproperlyConfigured):
            AttachmentConfig(name="pic", mimetype=None)

    def test_crop_on_non_image_mimetype(self):
        with pytest.raises(ConfigurationError) as exc_info:
            AttachmentConfig(name="doc", mimetype="application/pdf", crop=True)
        assert "non-image" in str(exc_info.value)

    def test_sizes_on_non_image_mimetype(self):
        with pytest.raises(ConfigurationError):
            AttachmentConfig(name="doc", mimetype=re.compile("pdf"), sizes={"small": 64})

    @pytest.mark.parametrize("sizes", [
        {"small": True},
        {"small": 1.5},
        {"small": {"quality": 80}},
        {"small": {"size": 64, "quality": 0}},
        {"small": {"size": 64, "quality": "high"}},
        {"small": "big"},
    ])
    def test_bad_size_descriptors(self, sizes):
        with pytest.raises(ConfigurationError):
            AttachmentConfig(name="pic", mimetype="image", sizes=sizes)

    def test_valid_size_descriptors(self):
        config = AttachmentConfig(
            name="pic",
            mimetype="image",
            sizes={"a": 64, "b": "x300", "c": "150x350!", "d": {"size": 32, "quality": 80}},
        )
        assert list(config.sizes) == ["a", "b", "c", "d"]

    def test_cleanup_sink_must_be_callable(self):
        with pytest.raises(ConfigurationError):
            AttachmentConfig(name="pic", mimetype="image", on_cleanup_error="log")


class TestMatching:
    """Test suite for MIME type matching."""

    def test_string_matcher_is_searched(self):
        config = AttachmentConfig(name="pic", mimetype="image")
        assert config.matches("image/png")
        assert not config.matches("application/javascript")

    def test_pattern_matcher(self):
        config = AttachmentConfig(name="pic", mimetype=re.compile(r"^image/(png|jpeg)$"))
        assert config.matches("image/jpeg")
        assert not config.matches("image/gif")

    def test_missing_mimetype_never_matches(self):
        config = AttachmentConfig(name="pic", mimetype="image")
        assert not config.matches(None)

    def test_accepts_images(self):
        assert AttachmentConfig(name="pic", mimetype=re.compile("^image/")).accepts_images
        assert not AttachmentConfig(name="doc", mimetype="text/plain").accepts_images


class TestImmutability:
    """Test suite for config records being immutable."""

    def test_fields_cannot_be_assigned(self):
        config = AttachmentConfig(name="pic", mimetype="image")
        with pytest.raises(dataclasses.FrozenInstanceError):
            config.cleanup = True

    def test_sizes_are_read_only(self):
        sizes = {"small": 64}
        config = AttachmentConfig(name="pic", mimetype="image", sizes=sizes)
        sizes["big"] = 300
        assert "big" not in config.sizes
        with pytest.raises(TypeError):
            config.sizes["huge"] = 1000

    def test_bind_returns_copy(self):
        """Binding to a model never changes the shared config."""
        config = AttachmentConfig(name="pic", mimetype="image")
        users = config.bind("user")
        posts = config.bind("post")
        assert config.folder is None
        assert users.folder.endswith("/users/pics")
        assert posts.folder.endswith("/posts/pics")
        assert users.base_path == config.base_path
