"""Shared fixtures for django-filefield tests."""
import io
import os
import shutil

import httpx
import pytest
from django.conf import settings
from PIL import Image

from django_filefield.fetch import RemoteFetcher
from django_filefield.fields import iter_controllers
from django_filefield.paths import from_public

BASE_URL = "http://ski-o.ru"
URL = f"{BASE_URL}/img/photo/120316-1.jpg"
URL2 = f"{BASE_URL}/img/photo/120316-2.jpg"
NOT_FOUND_URL = f"{BASE_URL}/ooooooooooo"
SCRIPT_URL = f"{BASE_URL}/static/app.js"
INVALID_URL = "htt/ooooooooooo"


def image_bytes(width=400, height=300, format="JPEG"):
    """Encoded test image."""
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color="red").save(buffer, format=format)
    return buffer.getvalue()


def disk_path(stored):
    """Filesystem path of a stored public path."""
    return from_public(stored, settings.FILEFIELD_PUBLIC_PATH)


def remote_handler(calls):
    """httpx.MockTransport handler serving a few fixed resources."""

    def handler(request):
        calls.append((request.method, request.url.path))
        path = request.url.path
        if path.startswith("/img/photo/"):
            content = image_bytes() if request.method == "GET" else b""
            return httpx.Response(200, headers={"content-type": "image/jpeg"}, content=content)
        if path == "/static/app.js":
            content = b"alert(1);" if request.method == "GET" else b""
            return httpx.Response(
                200,
                headers={"content-type": "application/javascript; charset=utf-8"},
                content=content,
            )
        return httpx.Response(404)

    return handler


@pytest.fixture(autouse=True)
def clean_uploads():
    """Remove everything written under the public path after each test."""
    yield
    shutil.rmtree(os.path.join(settings.FILEFIELD_PUBLIC_PATH, "uploads"), ignore_errors=True)


@pytest.fixture
def image_file(tmp_path):
    """Factory for staged local images: returns a {path, mimetype} descriptor."""

    def factory(name="Lenna.png", width=512, height=512, mimetype="image/png"):
        path = tmp_path / name
        Image.new("RGB", (width, height), color="blue").save(path)
        return {"path": str(path), "mimetype": mimetype}

    return factory


@pytest.fixture
def remote(monkeypatch):
    """Route downloads of every registered attachment to a mock transport.

    Yields the list of (method, path) requests made.
    """
    calls = []
    client = httpx.Client(transport=httpx.MockTransport(remote_handler(calls)))
    for controller in iter_controllers():
        monkeypatch.setattr(controller, "fetcher", RemoteFetcher(client=client))
    yield calls
    client.close()
