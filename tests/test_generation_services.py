"""Tests for the request boundary: generate_image, edit_image, generate_video."""

import json

import httpx
import pytest

from conftest import FakeWebSocket, make_connect, runware_responder
from genstudio.config import get_settings
from genstudio.schemas import Completed, EditRequest, Failed, GenerationRequest, Pending
from genstudio.services.image_gen import edit_image, generate_image, get_image_service
from genstudio.services.video_gen import generate_video, is_poll_request
from genstudio.services.video_poller import VideoTaskPoller

API_URL = "https://api.runware.test/v1"
SEED = "data:image/png;base64,iVBORw0KGgo="


@pytest.fixture
def no_api_key(monkeypatch):
    monkeypatch.setenv("RUNWARE_API_KEY", "")
    get_settings.cache_clear()


# ---------------------------------------------------------------------------
# Image
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_generate_image_completed(fake_ws):
    connect = make_connect(fake_ws)
    request = GenerationRequest(prompt="a cabin in the woods", model="flux-dev", aspect_ratio="1:1")

    outcome = await generate_image(request, connect=connect)

    assert isinstance(outcome, Completed)
    assert outcome.media_url == "https://im.runware.test/image.png"
    assert outcome.seed == 42
    assert outcome.model == "bfl:2@1"
    assert outcome.elapsed_seconds is not None
    assert connect.calls == ["wss://ws.runware.test/v1"]
    task = fake_ws.sent[1][0]
    assert (task["width"], task["height"]) == (1024, 1024)
    assert task["taskUUID"] == outcome.task_uuid


@pytest.mark.asyncio
async def test_generate_image_empty_prompt_never_connects(fake_ws):
    connect = make_connect(fake_ws)

    outcome = await generate_image(GenerationRequest(prompt=""), connect=connect)

    assert isinstance(outcome, Failed)
    assert outcome.error_kind == "validation_error"
    assert outcome.http_status == 400
    assert connect.calls == []


@pytest.mark.asyncio
async def test_generate_image_missing_api_key(no_api_key, fake_ws):
    connect = make_connect(fake_ws)

    outcome = await generate_image(GenerationRequest(prompt="a cabin"), connect=connect)

    assert outcome.error_kind == "configuration_error"
    assert outcome.http_status == 500
    assert connect.calls == []


@pytest.mark.asyncio
async def test_generate_image_auth_never_acknowledged(monkeypatch):
    monkeypatch.setenv("AUTH_TIMEOUT", "0.05")
    get_settings.cache_clear()
    ws = FakeWebSocket(lambda message: [])

    outcome = await generate_image(GenerationRequest(prompt="a cabin"), connect=make_connect(ws))

    assert isinstance(outcome, Failed)
    assert outcome.error_kind == "authentication_failed"
    assert ws.closed


@pytest.mark.asyncio
async def test_generate_image_remote_failure_keeps_task_uuid():
    ws = FakeWebSocket(runware_responder(image_item={"errorMessage": "NSFW content detected"}))

    outcome = await generate_image(GenerationRequest(prompt="a cabin"), connect=make_connect(ws))

    assert outcome.error_kind == "remote_task_failed"
    assert outcome.task_uuid == ws.sent[1][0]["taskUUID"]


@pytest.mark.asyncio
async def test_generate_image_ignores_caller_task_uuid(fake_ws):
    request = GenerationRequest(prompt="a red barn", task_uuid="caller-chosen")

    outcome = await generate_image(request, connect=make_connect(fake_ws))

    sent_uuid = fake_ws.sent[1][0]["taskUUID"]
    assert sent_uuid != "caller-chosen"
    assert outcome.task_uuid == sent_uuid


@pytest.mark.asyncio
async def test_image_service_metrics(fake_ws):
    service = get_image_service()
    before = service.get_metrics()

    await generate_image(GenerationRequest(prompt="a cabin"), connect=make_connect(fake_ws))
    await generate_image(GenerationRequest(prompt="x"), connect=make_connect(fake_ws))

    after = service.get_metrics()
    assert after["total_calls"] == before["total_calls"] + 2
    assert after["completed"] == before["completed"] + 1
    assert after["error_kinds"]["validation_error"] >= 1


# ---------------------------------------------------------------------------
# Edit
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_edit_image_completed(respx_mock):
    def provider(request):
        task = json.loads(request.content)[0]
        return httpx.Response(200, json={"data": [{
            "taskType": "imageInference",
            "taskUUID": task["taskUUID"],
            "imageURL": "https://im.runware.test/edited.png",
            "cost": 0.004,
        }]})

    route = respx_mock.post(API_URL).mock(side_effect=provider)
    request = EditRequest(prompt="add snow", edit_style="qwen-edit", seed_image=SEED)

    outcome = await edit_image(request)

    assert isinstance(outcome, Completed)
    assert outcome.media_url == "https://im.runware.test/edited.png"
    assert outcome.model == "runware:108@20"
    sent = json.loads(route.calls.last.request.content)[0]
    assert sent["referenceImages"] == [SEED]


@pytest.mark.asyncio
async def test_edit_image_provider_401(respx_mock):
    respx_mock.post(API_URL).mock(
        return_value=httpx.Response(401, json={"errors": [{"message": "Invalid API key"}]}),
    )
    request = EditRequest(prompt="add snow", edit_style="ideogram-3", seed_image=SEED)

    outcome = await edit_image(request)

    assert outcome.error_kind == "authentication_failed"
    assert outcome.http_status == 401


@pytest.mark.asyncio
async def test_edit_image_unknown_style(respx_mock):
    outcome = await edit_image(EditRequest(prompt="add snow", edit_style="watercolor", seed_image=SEED))

    assert outcome.error_kind == "validation_error"
    assert respx_mock.calls.call_count == 0


@pytest.mark.asyncio
async def test_edit_image_no_result_for_task(respx_mock):
    respx_mock.post(API_URL).mock(return_value=httpx.Response(200, json={"data": []}))

    outcome = await edit_image(EditRequest(prompt="add snow", edit_style="qwen-edit", seed_image=SEED))

    assert outcome.error_kind == "provider_error"


# ---------------------------------------------------------------------------
# Video
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("data,mode,expected", [
    ({"taskUUID": "t"}, "poll", True),
    ({"positivePrompt": "waves"}, "poll", False),
    ({"taskUUID": "t"}, None, True),
    ({"taskUUID": "t", "positivePrompt": "waves"}, None, False),
    ({"taskUUID": "t", "frameImages": [{"inputImage": SEED}]}, None, False),
    ({"taskUUID": "t", "positivePrompt": "waves"}, "poll", True),
])
def test_is_poll_request(data, mode, expected):
    assert is_poll_request(GenerationRequest.model_validate(data), mode) is expected


@pytest.mark.asyncio
async def test_generate_video_poll_mode_never_submits(respx_mock):
    def provider(request):
        task = json.loads(request.content)[0]
        assert task["taskType"] == "getResponse"
        return httpx.Response(200, json=[{"taskUUID": task["taskUUID"], "status": "processing"}])

    respx_mock.post(API_URL).mock(side_effect=provider)
    poller = VideoTaskPoller(sleep=_no_sleep)

    outcome = await generate_video(GenerationRequest(task_uuid="vid-1", kind="video"), "poll", poller=poller)

    assert outcome == Pending(task_uuid="vid-1")
    assert respx_mock.calls.call_count == 3


@pytest.mark.asyncio
async def test_generate_video_transport_failure(respx_mock):
    respx_mock.post(API_URL).mock(side_effect=httpx.ConnectError("connection refused"))

    outcome = await generate_video(
        GenerationRequest(prompt="waves at dusk", kind="video", task_uuid="vid-2"),
        "start",
        poller=VideoTaskPoller(sleep=_no_sleep),
    )

    assert outcome.error_kind == "transport_error"
    assert outcome.task_uuid == "vid-2"


@pytest.mark.asyncio
async def test_generate_video_invalid_mode():
    outcome = await generate_video(GenerationRequest(prompt="waves", kind="video"), "rewind")
    assert outcome.error_kind == "validation_error"


@pytest.mark.asyncio
async def test_generate_video_poll_without_task_uuid():
    outcome = await generate_video(GenerationRequest(prompt="waves", kind="video"), "poll")
    assert outcome.error_kind == "validation_error"


@pytest.mark.asyncio
async def test_generate_video_missing_api_key(no_api_key, respx_mock):
    outcome = await generate_video(GenerationRequest(prompt="waves at dusk", kind="video"), "start")

    assert outcome.error_kind == "configuration_error"
    assert respx_mock.calls.call_count == 0


async def _no_sleep(seconds):
    return None
