import asyncio
import json

import pytest

from brevskriver_local.errors import ModelNotReady
from brevskriver_local.utils import llm_client
from brevskriver_local.utils.llm_client import LocalModelService, normalize_llm_base_url, runtime_host


class StubClient:
    def __init__(self, models):
        self.models = list(models)
        self.list_calls = 0
        self.messages = None

    def list_models(self):
        self.list_calls += 1
        return list(self.models)

    def chat_completion(self, messages, temperature=0.3, **kwargs):
        self.messages = messages
        return "Emne: Svar"


class StubPullResponse:
    def __init__(self, events):
        self.events = events

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        return False

    def raise_for_status(self):
        return None

    def iter_lines(self):
        for event in self.events:
            yield json.dumps(event).encode("utf-8")
            yield b""


@pytest.mark.parametrize(
    "url, expected",
    [
        (None, "http://127.0.0.1:11434/v1"),
        ("http://localhost:8080", "http://localhost:8080/v1"),
        ("http://localhost:8080/v1/", "http://localhost:8080/v1"),
    ],
)
def test_normalize_llm_base_url(url, expected):
    assert normalize_llm_base_url(url) == expected


def test_runtime_host_strips_api_path():
    assert runtime_host("http://127.0.0.1:11434/v1") == "http://127.0.0.1:11434"


def test_complete_before_init_raises_model_not_ready():
    service = LocalModelService(client=StubClient(["phi3.5"]))

    with pytest.raises(ModelNotReady):
        asyncio.run(service.complete("system", "user"))


def test_init_is_idempotent_and_accepts_latest_tag():
    client = StubClient(["phi3.5:latest"])
    service = LocalModelService(client=client)

    async def scenario():
        await asyncio.gather(service.init("phi3.5"), service.init("phi3.5"))
        await service.init("phi3.5")
        return await service.complete("regler", "felter")

    reply = asyncio.run(scenario())

    assert client.list_calls == 1
    assert service.status.ready
    assert service.status.progress == 1.0
    assert service.model == "phi3.5"
    assert reply == "Emne: Svar"
    assert [message["role"] for message in client.messages] == ["system", "user"]


def test_missing_model_without_auto_pull_fails_and_can_retry():
    client = StubClient([])
    service = LocalModelService(client=client, auto_pull=False)

    async def scenario():
        with pytest.raises(ModelNotReady):
            await service.init("phi3.5")
        failed_status = service.status
        client.models.append("phi3.5")
        await service.init("phi3.5")
        return failed_status

    failed_status = asyncio.run(scenario())

    assert not failed_status.ready
    assert failed_status.message.startswith("Model load failed:")
    assert service.status.ready
    assert client.list_calls == 2


def test_missing_model_is_pulled_with_progress(monkeypatch):
    requests_seen = []

    def fake_post(url, json=None, stream=False, timeout=None):
        requests_seen.append((url, json))
        return StubPullResponse([
            {"status": "pulling manifest"},
            {"status": "downloading", "total": 200, "completed": 100},
            {"status": "success"},
        ])

    monkeypatch.setattr(llm_client.requests, "post", fake_post)
    service = LocalModelService(client=StubClient([]))

    asyncio.run(service.init("phi3.5"))

    assert requests_seen == [("http://127.0.0.1:11434/api/pull", {"model": "phi3.5", "stream": True})]
    assert service.status.ready


def test_pull_error_is_reported_in_status(monkeypatch):
    monkeypatch.setattr(
        llm_client.requests,
        "post",
        lambda url, **kwargs: StubPullResponse([{"error": "model not found"}]),
    )
    service = LocalModelService(client=StubClient([]))

    with pytest.raises(RuntimeError):
        asyncio.run(service.init("does-not-exist"))

    assert not service.status.ready
    assert "model not found" in service.status.message
