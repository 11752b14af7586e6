"""Tests for relocate.py - moving staged files into place."""
import os
from types import SimpleNamespace

import pytest

from django_filefield.config import AttachmentConfig
from django_filefield.exceptions import MoveError
from django_filefield.relocate import relocate, relocate_for
from django_filefield.values import LocalRef


@pytest.fixture
def staged(tmp_path):
    path = tmp_path / "staging" / "Lenna.png"
    path.parent.mkdir()
    path.write_bytes(b"png")
    return LocalRef(path=str(path), mimetype="image/png")


class TestRelocate:
    """Test suite for relocate function."""

    def test_moves_and_creates_directories(self, staged, tmp_path):
        destination = str(tmp_path / "uploads" / "models" / "pics" / "1" / "Lenna.png")
        file = relocate(staged, destination)

        assert file == LocalRef(path=destination, mimetype="image/png")
        assert os.path.exists(destination)
        assert not os.path.exists(staged.path)

    def test_existing_directory_is_tolerated(self, staged, tmp_path):
        (tmp_path / "uploads").mkdir()
        file = relocate(staged, str(tmp_path / "uploads" / "Lenna.png"))
        assert os.path.exists(file.path)

    def test_missing_source(self, tmp_path):
        file = LocalRef(path=str(tmp_path / "missing.png"), mimetype="image/png")
        with pytest.raises(MoveError) as exc_info:
            relocate(file, str(tmp_path / "out" / "missing.png"))
        assert "does not exist" in str(exc_info.value)

    def test_directory_cannot_be_created(self, staged, tmp_path):
        """A file standing where the directory should be fails the move."""
        (tmp_path / "blocked").write_bytes(b"")
        with pytest.raises(MoveError):
            relocate(staged, str(tmp_path / "blocked" / "Lenna.png"))
        assert os.path.exists(staged.path)


class TestRelocateFor:
    """Test suite for relocate_for function."""

    def test_uses_planned_destination(self, staged, tmp_path):
        base = str(tmp_path / "public" / "uploads")
        config = AttachmentConfig(name="pic", mimetype="image", base_path=base)
        file = relocate_for(staged, SimpleNamespace(id=9), config, "model")

        assert file.path == f"{base}/models/pics/9/Lenna.png"
        assert os.path.exists(file.path)
