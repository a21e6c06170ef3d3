"""Shared fixtures: a stub HTTP adapter mounted on the writer's session."""
import socket
import sys
import threading
from pathlib import Path

import pytest
import requests
from requests.adapters import BaseAdapter

sys.path.insert(0, str(Path(__file__).parent.parent))

from rulewriter.config import WriterConfig
from rulewriter.frames import Frame, FrameField, FrameMeta
from rulewriter.remote_client import DefaultHTTPClientProvider


class StubAdapter(BaseAdapter):
    """Answers every request with a canned response, or raises."""

    def __init__(self, status=204, body="", exc=None):
        super().__init__()
        self.status = status
        self.body = body
        self.exc = exc
        self.requests = []

    def send(self, request, **kwargs):
        self.requests.append((request, kwargs))
        if self.exc is not None:
            raise self.exc
        resp = requests.Response()
        resp.status_code = self.status
        resp._content = self.body.encode("utf-8")
        resp._content_consumed = True
        resp.encoding = "utf-8"
        resp.request = request
        resp.url = request.url
        return resp

    def close(self):
        pass


class StubProvider:
    """HTTP client provider that routes everything to a StubAdapter."""

    def __init__(self, adapter):
        self.adapter = adapter
        self.options = None

    def get_transport(self, options):
        self.options = options
        session = DefaultHTTPClientProvider().get_transport(options)
        session.mount("http://", self.adapter)
        session.mount("https://", self.adapter)
        return session


def multi_frame(labels, value, name="A"):
    """One numeric-multi frame holding a single series."""
    return Frame(
        name=name,
        meta=FrameMeta(type="numeric-multi"),
        fields=[FrameField(name="Value", type="number", labels=labels, values=[value])],
    )


@pytest.fixture
def adapter():
    return StubAdapter()


@pytest.fixture
def provider(adapter):
    return StubProvider(adapter)


@pytest.fixture
def writer_config():
    return WriterConfig(url="http://prometheus.example.com/api/v1/write", timeout=5)


@pytest.fixture
def slow_server():
    """A real HTTP endpoint that answers 500 and trickles its body out.

    Each byte arrives well inside a per-read timeout, but the whole body
    takes several seconds. Yields the write URL.
    """
    listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    listener.bind(("127.0.0.1", 0))
    listener.listen(1)
    listener.settimeout(5)
    stop = threading.Event()
    body = b"x" * 20

    def serve():
        try:
            conn, _ = listener.accept()
        except OSError:
            return
        with conn:
            try:
                conn.recv(65536)
                conn.sendall(
                    b"HTTP/1.1 500 Internal Server Error\r\n"
                    b"Content-Type: text/plain\r\n"
                    b"Content-Length: %d\r\n\r\n" % len(body)
                )
                for i in range(len(body)):
                    if stop.wait(0.3):
                        return
                    conn.sendall(body[i:i + 1])
            except (BrokenPipeError, ConnectionResetError):
                return

    thread = threading.Thread(target=serve, daemon=True)
    thread.start()
    yield "http://127.0.0.1:%d/api/v1/write" % listener.getsockname()[1]
    stop.set()
    listener.close()
    thread.join(timeout=2)
