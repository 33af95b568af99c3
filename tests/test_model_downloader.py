"""
Tests for model downloads, with requests.get replaced by a fake response.
"""

import os

import pytest
import requests

from whisperburn import model_downloader
from whisperburn.exceptions import ModelDownloadError, ModelNotFoundError
from whisperburn.model_downloader import ModelDownloader, default_model_urls

URLS = {"tiny": "https://models.example/tiny.pt", "small": "https://models.example/small.pt"}


class FakeResponse:
    def __init__(self, chunks, status_error=None, fail_after=None):
        self.chunks = chunks
        self.status_error = status_error
        self.fail_after = fail_after
        self.headers = {"Content-Length": str(sum(len(c) for c in chunks))}

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def raise_for_status(self):
        if self.status_error is not None:
            raise self.status_error

    def iter_content(self, chunk_size=None):
        for i, chunk in enumerate(self.chunks):
            if self.fail_after is not None and i == self.fail_after:
                raise requests.exceptions.ConnectionError("connection reset")
            yield chunk


@pytest.fixture
def fake_get(monkeypatch):
    calls = []

    def install(response):
        def get(url, stream=False, timeout=None):
            calls.append((url, stream))
            return response
        monkeypatch.setattr(model_downloader.requests, "get", get)
        return calls

    return install


@pytest.fixture
def downloader(store):
    return ModelDownloader(store, urls=URLS, show_progress=False)


def leftovers(directory):
    return [name for name in os.listdir(directory) if name.endswith(".part")]


class TestDownload:

    def test_success(self, downloader, store, fake_get, models_dir):
        calls = fake_get(FakeResponse([b"abc", b"def"]))
        path = downloader.download("small")
        assert path == store.path_for("small")
        with open(path, "rb") as f:
            assert f.read() == b"abcdef"
        assert calls == [(URLS["small"], True)]
        assert leftovers(models_dir) == []

    def test_replaces_existing_file(self, downloader, store, fake_get):
        fake_get(FakeResponse([b"new weights"]))
        downloader.download("tiny")
        with open(store.path_for("tiny"), "rb") as f:
            assert f.read() == b"new weights"

    def test_unknown_model(self, downloader):
        with pytest.raises(ModelNotFoundError):
            downloader.download("gigantic")

    def test_http_error(self, downloader, store, fake_get, models_dir):
        fake_get(FakeResponse([], status_error=requests.exceptions.HTTPError("404")))
        with pytest.raises(ModelDownloadError):
            downloader.download("small")
        assert not store.is_available("small")
        assert leftovers(models_dir) == []

    def test_interrupted_transfer(self, downloader, store, fake_get, models_dir):
        fake_get(FakeResponse([b"abc", b"def"], fail_after=1))
        with pytest.raises(ModelDownloadError):
            downloader.download("small")
        assert not store.is_available("small")
        assert leftovers(models_dir) == []


class TestUrls:

    def test_template(self):
        urls = default_model_urls("https://mirror.example/{name}.pt")
        assert urls["base"] == "https://mirror.example/base.pt"
        assert sorted(urls) == ["base", "medium", "small", "tiny"]
