#!/usr/bin/env python3
"""
Unit tests for the HTTP content backend
"""

import asyncio
import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest
import requests

sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from a3t.backends.http_backend import HttpFsBackend


def run(coro):
    return asyncio.run(coro)


def make_response(status_code, text="", content=b""):
    response = MagicMock()
    response.status_code = status_code
    response.text = text
    response.content = content
    return response


@pytest.fixture
def session():
    return MagicMock(spec=requests.Session)


class TestHttpFsBackend:

    def test_read_text(self, session):
        session.get.return_value = make_response(200, text="Hello")
        backend = HttpFsBackend("https://cdn.example.com/assets/", session=session)

        assert run(backend.read_text("i18n/greeting.txt")) == "Hello"
        session.get.assert_called_once_with(
            "https://cdn.example.com/assets/i18n/greeting.txt", timeout=10
        )

    def test_read_binary(self, session):
        session.get.return_value = make_response(200, content=b"\x00\x01")
        backend = HttpFsBackend("https://cdn.example.com", session=session)
        assert run(backend.read_binary("logo.bin")) == b"\x00\x01"

    def test_404_is_none(self, session):
        session.get.return_value = make_response(404)
        backend = HttpFsBackend("https://cdn.example.com", session=session)
        assert run(backend.read_text("missing.txt")) is None

    def test_server_error_is_none(self, session):
        session.get.return_value = make_response(503)
        backend = HttpFsBackend("https://cdn.example.com", session=session)
        assert run(backend.read_text("x.txt")) is None

    def test_network_error_is_none(self, session):
        session.get.side_effect = requests.ConnectionError("refused")
        backend = HttpFsBackend("https://cdn.example.com", session=session)
        assert run(backend.read_text("x.txt")) is None

    @pytest.mark.parametrize("key", ["../etc/passwd", "a/../../b", "/etc/passwd", "a\\b", ".."])
    def test_traversal_never_requested(self, session, key):
        backend = HttpFsBackend("https://cdn.example.com", session=session)
        assert run(backend.read_text(key)) is None
        session.get.assert_not_called()

    def test_key_is_quoted(self, session):
        session.get.return_value = make_response(200, text="x")
        backend = HttpFsBackend("https://cdn.example.com", timeout=3, session=session)

        run(backend.read_text("docs/hello world.md"))
        session.get.assert_called_once_with(
            "https://cdn.example.com/docs/hello%20world.md", timeout=3
        )


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
