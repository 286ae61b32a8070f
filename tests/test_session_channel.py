"""Tests for the websocket session channel (in-memory fake socket)."""

import pytest
from websockets.exceptions import ConnectionClosedError

from conftest import FakeWebSocket, make_connect, runware_responder
from genstudio.errors import (
    AuthenticationFailed,
    GenerationTimeout,
    ProviderError,
    RemoteTaskFailed,
    TransportError,
)
from genstudio.services.session_channel import ChannelState, SessionChannel

TASK = {"taskType": "imageInference", "taskUUID": "task-1", "positivePrompt": "a red barn"}


def channel_for(ws, **kwargs):
    kwargs.setdefault("auth_timeout", 0.5)
    kwargs.setdefault("task_timeout", 0.5)
    return SessionChannel("rw-key", "wss://ws.test", connect=make_connect(ws), **kwargs)


@pytest.mark.asyncio
async def test_full_round_trip(fake_ws):
    channel = channel_for(fake_ws)
    item = await channel.run(TASK)

    assert item["imageURL"] == "https://im.runware.test/image.png"
    assert item["taskUUID"] == "task-1"
    assert channel.session_uuid == "session-1"
    assert channel.state is ChannelState.CLOSED
    assert fake_ws.closed
    assert fake_ws.sent[0] == [{"taskType": "authentication", "apiKey": "rw-key"}]
    assert fake_ws.sent[1] == [TASK]


@pytest.mark.asyncio
async def test_context_manager_reaches_ready(fake_ws):
    async with channel_for(fake_ws) as channel:
        assert channel.state is ChannelState.READY
    assert channel.state is ChannelState.CLOSED


@pytest.mark.asyncio
async def test_uncorrelated_messages_ignored():
    def respond(message):
        task = message[0]
        if task["taskType"] == "authentication":
            return [{"data": [{"taskType": "authentication", "connectionSessionUUID": "s"}]}]
        return [
            {"data": [{"taskType": "imageInference", "taskUUID": "someone-else", "imageURL": "wrong"}]},
            {"data": [{"taskType": "imageInference", "taskUUID": task["taskUUID"], "imageURL": "right"}]},
        ]

    item = await channel_for(FakeWebSocket(respond)).run(TASK)
    assert item["imageURL"] == "right"


@pytest.mark.asyncio
async def test_non_string_task_uuid_ignored():
    def respond(message):
        task = message[0]
        if task["taskType"] == "authentication":
            return [{"data": [{"taskType": "authentication", "connectionSessionUUID": "s"}]}]
        return [
            {"data": [{"taskType": "imageInference", "taskUUID": ["task-1"], "imageURL": "wrong"}]},
            {"data": [{"taskType": "imageInference", "taskUUID": task["taskUUID"], "imageURL": "right"}]},
        ]

    item = await channel_for(FakeWebSocket(respond)).run(TASK)
    assert item["imageURL"] == "right"


@pytest.mark.asyncio
async def test_connect_failure_is_transport_error():
    async def refuse(url, **kwargs):
        raise OSError("connection refused")

    channel = SessionChannel("rw-key", "wss://ws.test", connect=refuse)
    with pytest.raises(TransportError, match="connection refused"):
        await channel.run(TASK)
    assert channel.state is ChannelState.CLOSED


@pytest.mark.asyncio
async def test_auth_timeout():
    ws = FakeWebSocket(lambda message: [])
    channel = channel_for(ws, auth_timeout=0.05)
    with pytest.raises(AuthenticationFailed, match="timeout"):
        await channel.run(TASK)
    assert ws.closed
    assert len(ws.sent) == 1


@pytest.mark.asyncio
async def test_auth_error_message():
    ws = FakeWebSocket(lambda message: [{"errors": [{"message": "Invalid API key", "taskType": "authentication"}]}])
    with pytest.raises(AuthenticationFailed, match="Invalid API key"):
        await channel_for(ws).run(TASK)
    assert ws.closed


@pytest.mark.asyncio
async def test_auth_ack_without_session_id():
    ws = FakeWebSocket(runware_responder(auth_ack={"taskType": "authentication"}))
    with pytest.raises(AuthenticationFailed, match="session id"):
        await channel_for(ws).run(TASK)


@pytest.mark.asyncio
async def test_close_during_auth():
    ws = FakeWebSocket(lambda message: [ConnectionClosedError(None, None)])
    with pytest.raises(AuthenticationFailed, match="closed"):
        await channel_for(ws).run(TASK)


@pytest.mark.asyncio
async def test_item_error_is_remote_task_failure():
    ws = FakeWebSocket(runware_responder(image_item={"error": {"message": "NSFW content detected"}}))
    with pytest.raises(RemoteTaskFailed, match="NSFW content detected"):
        await channel_for(ws).run(TASK)
    assert ws.closed


@pytest.mark.asyncio
async def test_errors_entry_for_task_is_remote_task_failure():
    def respond(message):
        task = message[0]
        if task["taskType"] == "authentication":
            return [{"data": [{"taskType": "authentication", "connectionSessionUUID": "s"}]}]
        return [{"errors": [{"taskUUID": task["taskUUID"], "message": "Invalid model"}]}]

    with pytest.raises(RemoteTaskFailed, match="Invalid model"):
        await channel_for(FakeWebSocket(respond)).run(TASK)


@pytest.mark.asyncio
async def test_unmatched_top_level_error_is_provider_error():
    def respond(message):
        if message[0]["taskType"] == "authentication":
            return [{"data": [{"taskType": "authentication", "connectionSessionUUID": "s"}]}]
        return [{"error": True, "errorMessage": "Service overloaded"}]

    with pytest.raises(ProviderError, match="Service overloaded"):
        await channel_for(FakeWebSocket(respond)).run(TASK)


@pytest.mark.asyncio
async def test_result_timeout():
    ws = FakeWebSocket(runware_responder())
    ws.responder = lambda message: (
        runware_responder()(message) if message[0]["taskType"] == "authentication" else []
    )
    with pytest.raises(GenerationTimeout):
        await channel_for(ws, task_timeout=0.05).run(TASK)
    assert ws.closed


@pytest.mark.asyncio
async def test_unexpected_close_while_waiting():
    def respond(message):
        if message[0]["taskType"] == "authentication":
            return [{"data": [{"taskType": "authentication", "connectionSessionUUID": "s"}]}]
        return [ConnectionClosedError(None, None)]

    with pytest.raises(TransportError, match="closed unexpectedly"):
        await channel_for(FakeWebSocket(respond)).run(TASK)


@pytest.mark.asyncio
async def test_unparsable_message_while_waiting():
    def respond(message):
        if message[0]["taskType"] == "authentication":
            return [{"data": [{"taskType": "authentication", "connectionSessionUUID": "s"}]}]
        return ["not json {"]

    with pytest.raises(TransportError, match="parse"):
        await channel_for(FakeWebSocket(respond)).run(TASK)


@pytest.mark.asyncio
async def test_send_before_open_rejected(fake_ws):
    channel = channel_for(fake_ws)
    with pytest.raises(TransportError, match="not ready"):
        await channel.send_task(TASK)
