"""Pytest configuration helpers.

Puts ``backend/`` on ``sys.path`` so tests can import the ``genstudio``
package regardless of how pytest is invoked, and provides an in-memory
websocket standing in for the Runware socket.
"""
import asyncio
import json
import os
import sys

import pytest


BACKEND = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "backend"))
if BACKEND not in sys.path:
    sys.path.insert(0, BACKEND)

from genstudio.config import get_settings  # noqa: E402
from genstudio.services import runware_client  # noqa: E402
from genstudio.services.video_poller import reset_video_poller  # noqa: E402

TEST_API_KEY = "rw-test-key-0123456789abcdef"


@pytest.fixture(autouse=True)
def runware_env(monkeypatch):
    """Fresh settings, poller and HTTP client for every test."""
    monkeypatch.setenv("RUNWARE_API_KEY", TEST_API_KEY)
    monkeypatch.setenv("RUNWARE_API_URL", "https://api.runware.test/v1")
    monkeypatch.setenv("RUNWARE_WS_URL", "wss://ws.runware.test/v1")
    monkeypatch.setenv("VIDEO_MAX_POLLS", "3")
    monkeypatch.setenv("VIDEO_POLL_INTERVAL", "0")
    monkeypatch.setattr(runware_client, "_http_client", None)
    get_settings.cache_clear()
    reset_video_poller()
    yield
    get_settings.cache_clear()
    reset_video_poller()


class FakeWebSocket:
    """Scripted stand-in for a websockets client connection.

    ``responder`` receives each decoded outbound message (a task list) and
    returns the replies to enqueue: dicts are JSON-encoded, strings are
    delivered raw, exceptions are raised from ``recv``.
    """

    def __init__(self, responder=None):
        self.responder = responder or (lambda message: [])
        self.sent = []
        self.closed = False
        self._inbox = asyncio.Queue()

    def push(self, reply):
        if isinstance(reply, dict) or isinstance(reply, list):
            reply = json.dumps(reply)
        self._inbox.put_nowait(reply)

    async def send(self, raw):
        message = json.loads(raw)
        self.sent.append(message)
        for reply in self.responder(message):
            self.push(reply)

    async def recv(self):
        item = await self._inbox.get()
        if isinstance(item, BaseException):
            raise item
        return item

    async def close(self):
        self.closed = True


def make_connect(ws):
    """Connector returning ``ws``; records the URLs it was called with."""
    calls = []

    async def connect(url, **kwargs):
        calls.append(url)
        return ws

    connect.calls = calls
    return connect


def runware_responder(image_item=None, auth_ack=None):
    """Responder that acks authentication and answers imageInference tasks."""

    def respond(message):
        task = message[0]
        if task["taskType"] == "authentication":
            ack = auth_ack if auth_ack is not None else {
                "taskType": "authentication",
                "connectionSessionUUID": "session-1",
            }
            return [{"data": [ack]}]
        if task["taskType"] == "imageInference":
            item = {
                "taskType": "imageInference",
                "taskUUID": task["taskUUID"],
                "imageURL": "https://im.runware.test/image.png",
                "cost": 0.0026,
                "seed": 42,
            }
            item.update(image_item or {})
            return [{"data": [item]}]
        return []

    return respond


@pytest.fixture
def fake_ws():
    return FakeWebSocket(runware_responder())
