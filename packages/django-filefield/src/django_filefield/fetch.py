"""Download remote attachments to a local staging file."""
import logging
import os

import httpx

from . import conf
from .exceptions import DownloadError, InvalidUrlError
from .paths import filename_from_url
from .values import LocalRef

logger = logging.getLogger(__name__)

ALLOWED_SCHEMES = ("http", "https")

CHUNK_SIZE = 64 * 1024


def validate_url(url: str) -> httpx.URL:
    """Parse url, raising InvalidUrlError unless it is an absolute http(s) URL."""
    try:
        parsed = httpx.URL(url)
    except (httpx.InvalidURL, TypeError) as e:
        raise InvalidUrlError(url, str(e)) from e
    if parsed.scheme not in ALLOWED_SCHEMES or not parsed.host:
        raise InvalidUrlError(url)
    return parsed


def _discard(path: str):
    """Remove a partially written download."""
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f"Failed to remove partial download {path}: {e}")


def _check_status(url: str, response: httpx.Response):
    if not 200 <= response.status_code < 400:
        raise DownloadError(url, response.status_code, response.reason_phrase)


class RemoteFetcher:
    """
    Fetch a URL into a staging directory.

    A HEAD request is issued first to check the status and read the MIME
    type; the body is then streamed with GET to
    ``<staging_dir>/<last URL segment>``.

    Args:
        client: httpx.Client to use. A client with the configured timeout is
            created per fetch when omitted.
    """

    def __init__(self, client: httpx.Client = None):
        self.client = client

    def _client(self) -> httpx.Client:
        return httpx.Client(timeout=conf.get_download_timeout(), follow_redirects=True)

    def fetch(self, url: str, staging_dir: str) -> LocalRef:
        validate_url(url)
        path = os.path.join(staging_dir, filename_from_url(url))

        if self.client is not None:
            return self._download(self.client, url, path)
        with self._client() as client:
            return self._download(client, url, path)

    def _download(self, client: httpx.Client, url: str, path: str) -> LocalRef:
        try:
            head = client.head(url, follow_redirects=True)
            _check_status(url, head)
            mimetype = head.headers.get("content-type", "").split(";")[0].strip()

            try:
                os.makedirs(os.path.dirname(path), exist_ok=True)
            except OSError as e:
                raise DownloadError(url, reason=str(e)) from e

            logger.debug(f"Downloading {url} to {path}")
            with client.stream("GET", url, follow_redirects=True) as response:
                _check_status(url, response)
                with open(path, "wb") as f:
                    for chunk in response.iter_bytes(CHUNK_SIZE):
                        f.write(chunk)
        except (httpx.HTTPError, OSError) as e:
            _discard(path)
            raise DownloadError(url, reason=str(e)) from e

        return LocalRef(path=path, mimetype=mimetype)
