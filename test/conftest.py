import logging

import pytest
import requests

from soltrace.utils.colors import set_colors_enabled


@pytest.fixture(autouse=True)
def plain_output():
    """Render without ANSI codes and keep the soltrace logger propagating to caplog."""
    set_colors_enabled(False)
    yield
    set_colors_enabled(False)
    for name in ("soltrace", "soltrace.middleware"):
        soltrace_logger = logging.getLogger(name)
        soltrace_logger.handlers.clear()
        soltrace_logger.propagate = True
        soltrace_logger.setLevel(logging.NOTSET)


@pytest.fixture(autouse=True)
def no_network(monkeypatch):
    def _refuse(*args, **kwargs):
        raise AssertionError("unexpected network access")

    monkeypatch.setattr(requests, "get", _refuse)


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    """Point the default signatures cache into a temporary home."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    return home


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self.payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload


class FakeSession:
    """Stands in for requests.Session in signature lookups."""

    def __init__(self, payload=None, status_code=200, exc=None):
        self.payload = payload
        self.status_code = status_code
        self.exc = exc
        self.calls = []

    def get(self, url, params=None, timeout=None):
        self.calls.append({"url": url, "params": params, "timeout": timeout})
        if self.exc is not None:
            raise self.exc
        return FakeResponse(self.payload, self.status_code)


@pytest.fixture
def fake_session():
    return FakeSession
