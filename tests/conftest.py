"""Shared fixtures: fake HTTP session and canned ISO / subtitle data."""

import hashlib
import sys
from pathlib import Path

import pytest
import requests

# Ensure project root is on sys.path
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from core.mirrors import MirrorCandidate


DEFAULT_URL = "https://cdimage.debian.org/debian-cd/current/amd64/iso-cd"
MIRROR_URL = "https://mirror.fcix.net/debian-cd/current/amd64/iso-cd"
ISO_NAME = "debian-13.1.0-amd64-netinst.iso"
GOOD_ISO = b"good iso payload" * 64
BAD_ISO = b"corrupted payload" * 64


class FakeResponse:
    """Minimal stand-in for requests.Response (streaming included)."""

    def __init__(self, body=b"", status_code=200, fail_after_first_chunk=False):
        if isinstance(body, str):
            body = body.encode("utf-8")
        self.body = body
        self.status_code = status_code
        self.headers = {"Content-Length": str(len(body))}
        self.fail_after_first_chunk = fail_after_first_chunk

    @property
    def text(self):
        return self.body.decode("utf-8")

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Client Error")

    def iter_content(self, chunk_size=1):
        half = max(1, len(self.body) // 2)
        yield self.body[:half]
        if self.fail_after_first_chunk:
            raise requests.ConnectionError("connection reset")
        yield self.body[half:]

    def close(self):
        pass

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


class FakeSession:
    """Routes GET requests by URL; a list route is consumed one item per call."""

    def __init__(self, routes=None):
        self.routes = routes or {}
        self.calls = []

    def get(self, url, **kwargs):
        self.calls.append(url)
        if url not in self.routes:
            raise requests.ConnectionError(f"no route for {url}")
        route = self.routes[url]
        if isinstance(route, list):
            item = route.pop(0) if len(route) > 1 else route[0]
        else:
            item = route
        if isinstance(item, Exception):
            raise item
        return item

    def count(self, url):
        return self.calls.count(url)


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def listing_html(*names):
    rows = "".join(f'<tr><td><a href="{n}">{n}</a></td></tr>\n' for n in names)
    return f"<html><body><table>\n{rows}</table></body></html>"


def checksums_text(digests):
    return "".join(f"{digest}  {name}\n" for name, digest in digests.items())


@pytest.fixture
def default_origin():
    return MirrorCandidate(url=DEFAULT_URL)


@pytest.fixture
def mirror_origin():
    return MirrorCandidate(url=MIRROR_URL)


@pytest.fixture
def srt_with_dialogue():
    return (
        "1\n"
        "00:00:00,000 --> 00:00:02,000\n"
        "hello everyone and welcome\n"
        "\n"
        "2\n"
        "00:00:02,000 --> 00:00:04,000\n"
        "to the show.\n"
        "\n"
        "3\n"
        "00:00:04,000 --> 00:00:06,000\n"
        "Today we talk about mirrors!\n"
    )


@pytest.fixture
def srt_without_dialogue():
    return (
        "1\n"
        "00:00:00,000 --> 00:00:02,000\n"
        "\n"
        "2\n"
        "00:00:02,000 --> 00:00:04,000\n"
        "   \n"
    )
