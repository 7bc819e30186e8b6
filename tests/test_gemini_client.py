"""
Tests for pixfrog.api.gemini_client and pixfrog.api.exceptions

Covers:
- HTTP status -> exception type mapping
- Safety block detection
- Text and inline image extraction
- Request payload shape
- Data URL helpers and error classification
"""

import base64
import json
from unittest.mock import Mock, patch

import pytest
import requests

from pixfrog.api import gemini_client
from pixfrog.api.exceptions import (
    ErrorKind,
    GeminiAccessDeniedError,
    GeminiAPIError,
    GeminiQuotaError,
    GeminiSafetyError,
    GeminiServerError,
    GeminiUnavailableError,
    MissingAPIKeyError,
    classify_error,
)
from pixfrog.api.gemini_client import (
    GeminiClient,
    call_gemini_image,
    call_gemini_text,
    split_data_url,
    to_data_url,
)


def fake_response(status=200, body=None):
    response = Mock()
    response.status_code = status
    response.ok = status < 400
    response.text = json.dumps(body) if body is not None else ""
    if body is None:
        response.json = Mock(side_effect=ValueError("no json"))
    else:
        response.json = Mock(return_value=body)
    return response


def image_body(data: bytes, mime="image/png"):
    return {
        "candidates": [{
            "content": {"parts": [
                {"text": "Here you go"},
                {"inlineData": {"mimeType": mime, "data": base64.b64encode(data).decode()}},
            ]},
            "finishReason": "STOP",
        }]
    }


POST = "pixfrog.api.gemini_client.requests.post"


class TestStatusMapping:

    @pytest.mark.parametrize("status,error_status,expected", [
        (429, "RESOURCE_EXHAUSTED", GeminiQuotaError),
        (503, "UNAVAILABLE", GeminiUnavailableError),
        (403, "PERMISSION_DENIED", GeminiAccessDeniedError),
        (500, "INTERNAL", GeminiServerError),
        (400, "INVALID_ARGUMENT", GeminiAPIError),
    ])
    def test_http_errors(self, status, error_status, expected):
        body = {"error": {"code": status, "status": error_status, "message": "nope"}}
        with patch(POST, return_value=fake_response(status, body)):
            with pytest.raises(expected) as exc_info:
                call_gemini_image("key", [{"text": "cat"}])
        assert exc_info.value.status_code == status

    def test_network_error_wrapped(self):
        with patch(POST, side_effect=requests.ConnectionError("offline")):
            with pytest.raises(GeminiAPIError) as exc_info:
                call_gemini_text("key", "hi")
        assert exc_info.value.status_code is None

    def test_non_json_body(self):
        with patch(POST, return_value=fake_response(200, None)):
            with pytest.raises(GeminiAPIError):
                call_gemini_text("key", "hi")


class TestSafety:

    def test_candidate_finish_reason(self):
        body = {"candidates": [{"finishReason": "IMAGE_SAFETY", "safetyRatings": [{"category": "X"}]}]}
        with patch(POST, return_value=fake_response(200, body)):
            with pytest.raises(GeminiSafetyError) as exc_info:
                call_gemini_image("key", [{"text": "cat"}])
        assert exc_info.value.safety_ratings == [{"category": "X"}]

    def test_prompt_feedback_block(self):
        body = {"promptFeedback": {"blockReason": "SAFETY"}}
        with patch(POST, return_value=fake_response(200, body)):
            with pytest.raises(GeminiSafetyError):
                call_gemini_text("key", "hi")


class TestImageCalls:

    def test_extracts_image_and_mime(self, png_bytes):
        with patch(POST, return_value=fake_response(200, image_body(png_bytes, "image/jpeg"))):
            image = call_gemini_image("key", [{"text": "cat"}])
        assert image.data == png_bytes
        assert image.mime_type == "image/jpeg"
        assert image.to_data_url().startswith("data:image/jpeg;base64,")

    def test_snake_case_inline_data(self, png_bytes):
        body = {"candidates": [{"content": {"parts": [
            {"inline_data": {"mime_type": "image/png", "data": base64.b64encode(png_bytes).decode()}}
        ]}}]}
        with patch(POST, return_value=fake_response(200, body)):
            assert call_gemini_image("key", [{"text": "cat"}]).data == png_bytes

    def test_no_image_returns_none(self):
        body = {"candidates": [{"content": {"parts": [{"text": "I can't draw that"}]}, "finishReason": "STOP"}]}
        with patch(POST, return_value=fake_response(200, body)):
            assert call_gemini_image("key", [{"text": "cat"}]) is None

    def test_payload_shape(self, png_bytes):
        with patch(POST, return_value=fake_response(200, image_body(png_bytes))) as post:
            call_gemini_image("secret", [{"text": "cat"}], model="gemini-x", aspect_ratio="16:9")

        url = post.call_args.args[0]
        kwargs = post.call_args.kwargs
        payload = json.loads(kwargs["data"])
        assert url.endswith("/gemini-x:generateContent")
        assert kwargs["headers"]["x-goog-api-key"] == "secret"
        assert payload["contents"] == [{"parts": [{"text": "cat"}]}]
        assert payload["generationConfig"]["imageConfig"] == {"aspectRatio": "16:9"}


class TestTextCalls:

    def test_returns_joined_text(self):
        body = {"candidates": [{"content": {"parts": [
            {"text": "thinking...", "thought": True},
            {"text": "  neon fox, "},
            {"text": "vector art  "},
        ]}}]}
        with patch(POST, return_value=fake_response(200, body)) as post:
            result = call_gemini_text("key", "a fox", system_instruction="be good", temperature=0.7)

        assert result == "neon fox, vector art"
        payload = json.loads(post.call_args.kwargs["data"])
        assert payload["systemInstruction"] == {"parts": [{"text": "be good"}]}
        assert payload["generationConfig"] == {"temperature": 0.7}

    def test_empty_text_raises(self):
        with patch(POST, return_value=fake_response(200, {"candidates": []})):
            with pytest.raises(GeminiAPIError):
                call_gemini_text("key", "a fox")

    @pytest.mark.asyncio
    async def test_async_client_runs_call(self):
        with patch.object(gemini_client, "call_gemini_text", return_value="ok") as call:
            assert await GeminiClient("key").generate_text("hi", "sys") == "ok"
        assert call.call_args.args[:3] == ("key", "hi", "sys")

    def test_client_requires_key(self):
        with pytest.raises(MissingAPIKeyError):
            GeminiClient("")


class TestApiKey:

    def test_explicit_key_wins(self, monkeypatch):
        monkeypatch.setenv("GEMINI_API_KEY", "from-env")
        assert gemini_client.get_api_key("explicit", interactive=False) == "explicit"

    def test_env_then_config(self, monkeypatch, tmp_path):
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)
        monkeypatch.delenv("API_KEY", raising=False)
        config_path = tmp_path / "config.json"
        config_path.write_text(json.dumps({"api_key": "from-config"}), encoding="utf-8")
        monkeypatch.setattr(gemini_client, "CONFIG_PATH", config_path)
        assert gemini_client.get_api_key(interactive=False) == "from-config"

        monkeypatch.setenv("API_KEY", "from-env")
        assert gemini_client.get_api_key(interactive=False) == "from-env"

    def test_missing_key_non_interactive(self, monkeypatch, tmp_path):
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)
        monkeypatch.delenv("API_KEY", raising=False)
        monkeypatch.setattr(gemini_client, "CONFIG_PATH", tmp_path / "missing.json")
        assert gemini_client.has_api_key() is False
        with pytest.raises(MissingAPIKeyError):
            gemini_client.get_api_key(interactive=False)


class TestDataUrls:

    def test_split_with_prefix(self):
        assert split_data_url("data:image/webp;base64,AAAA") == ("image/webp", "AAAA")

    def test_split_without_prefix_defaults_to_png(self):
        assert split_data_url("AAAA") == ("image/png", "AAAA")

    def test_to_data_url(self):
        assert to_data_url(b"\x00", "image/jpeg") == "data:image/jpeg;base64,AA=="

    def test_load_image_as_data_url(self, tmp_path, png_bytes):
        path = tmp_path / "ref.png"
        path.write_bytes(png_bytes)
        mime, data = split_data_url(gemini_client.load_image_as_data_url(path))
        assert mime == "image/png"
        assert base64.b64decode(data).startswith(b"\x89PNG")


class TestClassifyError:

    @pytest.mark.parametrize("error,kind", [
        (GeminiQuotaError("x", 429), ErrorKind.QUOTA),
        (RuntimeError("RESOURCE_EXHAUSTED"), ErrorKind.QUOTA),
        (GeminiAccessDeniedError("x", 403), ErrorKind.ACCESS_DENIED),
        (RuntimeError("PERMISSION_DENIED: billing"), ErrorKind.ACCESS_DENIED),
        (GeminiUnavailableError("x", 503), ErrorKind.UNAVAILABLE),
        (GeminiServerError("x", 502), ErrorKind.SERVER),
        (RuntimeError("500 INTERNAL"), ErrorKind.SERVER),
        (GeminiSafetyError("blocked"), ErrorKind.SAFETY),
        (ValueError("weird"), ErrorKind.UNKNOWN),
    ])
    def test_kinds(self, error, kind):
        assert classify_error(error) is kind

    def test_status_code_beats_message_markers(self):
        error = GeminiQuotaError("Quota exceeded. Please retry in 12.403187s.", 429)
        assert classify_error(error) is ErrorKind.QUOTA
        assert classify_error(GeminiUnavailableError("overloaded, retry in 1.5003s", 503)) is ErrorKind.UNAVAILABLE
        assert classify_error(GeminiServerError("backend 403 upstream", 502)) is ErrorKind.SERVER

    def test_quota_reply_with_retry_hint_classified_as_quota(self):
        body = {"error": {
            "code": 429,
            "status": "RESOURCE_EXHAUSTED",
            "message": "You exceeded your current quota. Please retry in 12.403187s.",
        }}
        with patch(POST, return_value=fake_response(429, body)):
            with pytest.raises(GeminiQuotaError) as exc_info:
                call_gemini_image("key", [{"text": "cat"}])
        assert classify_error(exc_info.value) is ErrorKind.QUOTA
