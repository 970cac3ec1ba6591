import asyncio
import json

import httpx
import pytest

from livecaption.errors import TranscriptionFailed, TranslationFailed
from livecaption.services.network import ApiClient, ApiError
from livecaption.store.settings_store import SettingsStore


def make_client(tmp_path, transport, **settings):
    store = SettingsStore(tmp_path / "settings.json")
    store.update(**({"server_url": "https://api.example.com", "api_key": "k"} | settings))
    return ApiClient(store, client=httpx.AsyncClient(transport=transport))


def test_transcribe_posts_multipart_audio(tmp_path):
    seen = {}

    def handler(request):
        if request.method == "POST" and request.url.path == "/api/transcribe":
            seen["key"] = request.headers["X-API-Key"]
            seen["body"] = request.content.decode("utf-8", errors="ignore")
            return httpx.Response(200, json={"transcription": "Bonjou zanmi"})
        if request.url.path == "/healthz":
            return httpx.Response(200, json={"ok": True})
        raise AssertionError("Unexpected request")

    client = make_client(tmp_path, httpx.MockTransport(handler))

    async def scenario():
        text = await client.transcribe(b"fLaC-audio", "ht")
        healthy = await client.test_connection()
        await client.aclose()
        return text, healthy

    text, healthy = asyncio.run(scenario())
    assert text == "Bonjou zanmi"
    assert healthy is True
    assert seen["key"] == "k"
    assert 'name="audio"' in seen["body"]
    assert 'name="language"' in seen["body"]
    assert "audio/flac" in seen["body"]


def test_transcribe_accepts_text_field(tmp_path):
    client = make_client(tmp_path, httpx.MockTransport(lambda request: httpx.Response(200, json={"text": "hi"})))
    assert asyncio.run(client.transcribe(b"x")) == "hi"


def test_unauthorized_maps_to_transcription_failed(tmp_path):
    client = make_client(tmp_path, httpx.MockTransport(lambda request: httpx.Response(401)))
    with pytest.raises(TranscriptionFailed) as excinfo:
        asyncio.run(client.transcribe(b"x"))
    assert "Unauthorized" in str(excinfo.value)


def test_transport_error_is_wrapped(tmp_path):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = make_client(tmp_path, httpx.MockTransport(handler))
    with pytest.raises(TranscriptionFailed):
        asyncio.run(client.transcribe(b"x"))


def test_translate_sends_json_body(tmp_path):
    seen = {}

    def handler(request):
        assert request.url.path == "/api/translate"
        seen.update(json.loads(request.content))
        return httpx.Response(200, json={"translation": "Hello friend"})

    client = make_client(tmp_path, httpx.MockTransport(handler))
    assert asyncio.run(client.translate("Bonjou zanmi", "ht", "en")) == "Hello friend"
    assert seen == {"text": "Bonjou zanmi", "sourceLang": "ht", "targetLang": "en"}


def test_translate_server_error(tmp_path):
    client = make_client(tmp_path, httpx.MockTransport(lambda request: httpx.Response(500)))
    with pytest.raises(TranslationFailed) as excinfo:
        asyncio.run(client.translate("a", "en", "es"))
    assert "500" in str(excinfo.value)


def test_missing_configuration(tmp_path):
    client = make_client(tmp_path, httpx.MockTransport(lambda request: httpx.Response(200)), server_url="")
    with pytest.raises(TranscriptionFailed) as excinfo:
        asyncio.run(client.transcribe(b"x"))
    assert "Server URL missing" in str(excinfo.value)
    with pytest.raises(ApiError):
        asyncio.run(client.test_connection())


def test_environment_values_fill_blank_store(tmp_path):
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["key"] = request.headers["X-API-Key"]
        return httpx.Response(200, json={"transcription": "hi"})

    store = SettingsStore(tmp_path / "settings.json")
    client = ApiClient(
        store,
        server_url="https://env.example.com/",
        api_key="env-key",
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )
    assert asyncio.run(client.transcribe(b"x", "en")) == "hi"
    assert seen == {"url": "https://env.example.com/api/transcribe", "key": "env-key"}

    store.update(server_url="https://saved.example.com", api_key="saved-key")
    asyncio.run(client.transcribe(b"x", "en"))
    assert seen == {"url": "https://saved.example.com/api/transcribe", "key": "saved-key"}
