from __future__ import annotations

import asyncio
import json

import pytest

import triage.llm_client as lc
from triage.config import LLMSettings


class _Resp:
    def __init__(self, *, status_code: int = 200, content: str = "{}", body=None):
        self.status_code = status_code
        self._content = content
        self._body = body

    def raise_for_status(self):
        if self.status_code >= 400:
            raise RuntimeError("http error")

    def json(self):
        if self._body is not None:
            return self._body
        return {"message": {"content": self._content}}


class _Client:
    def __init__(self):
        self.is_closed = False
        self.posts: list[tuple] = []
        self.last_get = None
        self.post_resp = _Resp(content='  {"intent": "QUERY"}  ')
        self.get_resp = _Resp(status_code=200)

    async def post(self, url, json):
        self.posts.append((url, json))
        return self.post_resp

    async def get(self, url):
        self.last_get = url
        return self.get_resp

    async def aclose(self):
        self.is_closed = True


def test_get_client_lazy_init_and_aclose(monkeypatch):
    created = {"n": 0, "kwargs": None}
    fake_client = _Client()

    def _factory(*args, **kwargs):
        created["n"] += 1
        created["kwargs"] = kwargs
        return fake_client

    monkeypatch.setattr(lc.httpx, "AsyncClient", _factory)
    c = lc.LLMClient(base_url="http://x/", model="m", api_key="secret", timeout_seconds=5)
    assert c.base_url == "http://x"
    assert c._get_client() is fake_client
    assert c._get_client() is fake_client
    assert created["n"] == 1
    assert created["kwargs"]["timeout"] == 5
    assert created["kwargs"]["headers"] == {"Authorization": "Bearer secret"}

    asyncio.run(c.aclose())
    assert fake_client.is_closed is True
    assert c._client is None


def test_generate_json_sends_schema_and_parses_reply(monkeypatch):
    c = lc.LLMClient(base_url="http://llm", model="m", num_predict=64)
    fake_client = _Client()
    monkeypatch.setattr(c, "_get_client", lambda: fake_client)

    schema = {"type": "object"}
    out = asyncio.run(
        c.generate_json(messages=[{"role": "user", "content": "hi"}], schema=schema, temperature=0.2)
    )
    assert out == {"intent": "QUERY"}
    url, payload = fake_client.posts[0]
    assert url == "http://llm/api/chat"
    assert payload["format"] == schema
    assert payload["stream"] is False
    assert payload["options"] == {"temperature": 0.2, "num_predict": 64}


def test_single_attempt_and_transport_error(monkeypatch):
    c = lc.LLMClient(base_url="http://llm", model="m")
    calls = {"n": 0}

    async def _boom(*args, **kwargs):
        calls["n"] += 1
        raise RuntimeError("down")

    fake_client = _Client()
    fake_client.post = _boom  # type: ignore[assignment]
    monkeypatch.setattr(c, "_get_client", lambda: fake_client)

    with pytest.raises(lc.LLMTransportError):
        asyncio.run(c.chat(messages=[{"role": "user", "content": "hi"}]))
    assert calls["n"] == 1

    fake_client = _Client()
    fake_client.post_resp = _Resp(status_code=503)
    monkeypatch.setattr(c, "_get_client", lambda: fake_client)
    with pytest.raises(lc.LLMTransportError):
        asyncio.run(c.chat(messages=[{"role": "user", "content": "hi"}]))


def test_malformed_replies_raise_reply_error(monkeypatch):
    c = lc.LLMClient(base_url="http://llm", model="m")
    fake_client = _Client()
    monkeypatch.setattr(c, "_get_client", lambda: fake_client)

    for resp in (
        _Resp(content="definitely not json"),
        _Resp(content="[1, 2]"),
        _Resp(content=""),
        _Resp(body={"unexpected": True}),
    ):
        fake_client.post_resp = resp
        with pytest.raises(lc.LLMReplyError):
            asyncio.run(c.generate_json(messages=[], schema={}))


def test_parse_json_object_accepts_fenced_block():
    assert lc.parse_json_object('```json\n{"isValid": true}\n```') == {"isValid": True}
    assert lc.parse_json_object(json.dumps({"a": 1})) == {"a": 1}


def test_health_success_and_exception(monkeypatch):
    c = lc.LLMClient(base_url="http://llm", model="m")
    fake_client = _Client()
    monkeypatch.setattr(c, "_get_client", lambda: fake_client)
    assert asyncio.run(c.health()) is True
    assert fake_client.last_get == "http://llm/api/tags"

    fake_client.get_resp = _Resp(status_code=503)
    assert asyncio.run(c.health()) is False

    async def _boom(*args, **kwargs):
        raise RuntimeError("down")

    fake_client.get = _boom  # type: ignore[assignment]
    assert asyncio.run(c.health()) is False


def test_build_llm_client_is_fresh_per_call(monkeypatch):
    monkeypatch.setenv("LLM_BASE_URL", "http://localhost:11434")
    monkeypatch.setenv("LLM_MODEL", "llama")
    monkeypatch.setenv("LLM_TIMEOUT_SECONDS", "9")
    c1 = lc.build_llm_client()
    c2 = lc.build_llm_client()
    assert c1 is not c2
    assert c1.base_url == "http://localhost:11434"
    assert c1.model == "llama"
    assert c1.timeout_seconds == 9.0

    monkeypatch.setenv("LLM_MODEL", "rotated")
    assert lc.build_llm_client().model == "rotated"

    explicit = lc.build_llm_client(LLMSettings(base_url="http://h", model="x", api_key="k"))
    assert explicit._api_key == "k"


def test_async_context_manager_closes(monkeypatch):
    fake_client = _Client()
    monkeypatch.setattr(lc.httpx, "AsyncClient", lambda *a, **k: fake_client)

    async def _use():
        async with lc.LLMClient(base_url="http://llm", model="m") as c:
            await c.health()
        return c

    c = asyncio.run(_use())
    assert fake_client.is_closed is True
    assert c._client is None


def test_closed_client_refuses_to_reopen(monkeypatch):
    created = {"n": 0}

    def _factory(*args, **kwargs):
        created["n"] += 1
        return _Client()

    monkeypatch.setattr(lc.httpx, "AsyncClient", _factory)
    c = lc.LLMClient(base_url="http://llm", model="m")
    c._get_client()
    asyncio.run(c.aclose())

    with pytest.raises(lc.LLMTransportError):
        c._get_client()
    with pytest.raises(lc.LLMTransportError):
        asyncio.run(c.generate_json(messages=[], schema={}))
    assert asyncio.run(c.health()) is False
    assert created["n"] == 1
