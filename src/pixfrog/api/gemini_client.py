"""
Gemini API client for prompt refinement and image generation.

Handles authentication, REST calls, status classification, and response
parsing for Google Gemini. Retries live in `retry.py`; this module makes
exactly one HTTP request per call.
"""

import asyncio
import base64
import json
import os
import re
import webbrowser
from io import BytesIO
from pathlib import Path
from typing import List, Optional, Tuple

import requests
from PIL import Image

from ..config import (
    API_KEY_ENV_VARS,
    API_KEY_PAGE_URL,
    CONFIG_PATH,
    IMAGE_MODEL_STANDARD,
    REFINE_TEMPERATURE,
    TEXT_MODEL,
    gemini_url,
)
from ..core.models import GeneratedImage
from ..logging_utils import log_api_call, log_debug, log_warning
from .exceptions import (
    GeminiAccessDeniedError,
    GeminiAPIError,
    GeminiQuotaError,
    GeminiSafetyError,
    GeminiServerError,
    GeminiUnavailableError,
    MissingAPIKeyError,
)


SAFETY_FINISH_REASONS = ("SAFETY", "IMAGE_SAFETY", "PROHIBITED_CONTENT", "IMAGE_PROHIBITED_CONTENT", "BLOCKLIST")

_DATA_URL_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+);base64,", re.IGNORECASE)


# =============================================================================
# Configuration Management
# =============================================================================

def load_config() -> dict:
    """
    Load configuration from ~/.pixfrog_config.json if present.

    Returns:
        Dictionary containing configuration, or empty dict if not found or unreadable.
    """
    if CONFIG_PATH.is_file():
        try:
            with CONFIG_PATH.open("r", encoding="utf-8") as f:
                data = json.load(f)
            return data if isinstance(data, dict) else {}
        except (OSError, ValueError) as e:
            log_warning(f"Could not read config {CONFIG_PATH}: {e}")
            return {}
    return {}


def save_config(config: dict) -> None:
    """
    Save configuration dictionary to CONFIG_PATH.

    Sets file permissions to 0o600 for security (API keys).
    """
    CONFIG_PATH.write_text(json.dumps(config, indent=2), encoding="utf-8")
    try:
        os.chmod(CONFIG_PATH, 0o600)
    except OSError:
        pass  # Permissions may not be supported on all platforms


def interactive_api_key_setup() -> str:
    """
    Prompt user for Gemini API key on the terminal and save it to config.

    Raises:
        SystemExit: If no API key is entered.
    """
    print("\nIt looks like you haven't configured a Gemini API key yet.")
    print("PixFrog needs a Google Gemini API key to refine prompts and generate images.")
    input("Press Enter to open the Gemini API key page in your browser...")

    try:
        webbrowser.open(API_KEY_PAGE_URL)
    except webbrowser.Error as e:
        print(f"Warning: could not open browser automatically: {e}")
        print(f"Please open this URL manually in your browser: {API_KEY_PAGE_URL}")

    api_key = input("\nPaste your Gemini API key here and press Enter:\n> ").strip()
    if not api_key:
        raise SystemExit("No API key entered. Please rerun when you have a key.")

    config = load_config()
    config["api_key"] = api_key
    save_config(config)
    print(f"Saved API key to {CONFIG_PATH}.")
    return api_key


def _lookup_api_key() -> str:
    for name in API_KEY_ENV_VARS:
        value = os.environ.get(name)
        if value:
            return value
    return load_config().get("api_key") or ""


def has_api_key() -> bool:
    """True if a key is available from the environment or config file."""
    return bool(_lookup_api_key())


def get_api_key(explicit: Optional[str] = None, interactive: bool = True) -> str:
    """
    Return the Gemini API key.

    Checks the explicit argument, then GEMINI_API_KEY / API_KEY, then the
    config file. If none is set, prompts on the terminal when `interactive`.

    Raises:
        MissingAPIKeyError: If no key is found and prompting is disabled.
        SystemExit: If the user cancels interactive setup.
    """
    if explicit:
        return explicit
    key = _lookup_api_key()
    if key:
        return key
    if interactive:
        return interactive_api_key_setup()
    raise MissingAPIKeyError(
        "API Key is missing. Please set GEMINI_API_KEY in your environment variables."
    )


# =============================================================================
# Image Utilities
# =============================================================================

def split_data_url(data_url: str) -> Tuple[str, str]:
    """
    Split a data URL into (mime_type, base64 body).

    Bare base64 without a prefix is treated as PNG.
    """
    match = _DATA_URL_RE.match(data_url)
    if not match:
        return "image/png", data_url
    return match.group("mime").lower(), data_url[match.end():]


def to_data_url(image_bytes: bytes, mime_type: str = "image/png") -> str:
    return f"data:{mime_type};base64,{base64.b64encode(image_bytes).decode('utf-8')}"


def load_image_as_data_url(path: Path) -> str:
    """
    Load image from disk, re-encode as PNG, return it as a data URL.

    Ensures consistent format for Gemini API regardless of source format.
    """
    img = Image.open(path).convert("RGBA")
    buffer = BytesIO()
    img.save(buffer, format="PNG")
    return to_data_url(buffer.getvalue(), "image/png")


def image_part(data_url: str) -> dict:
    """Build an inline_data request part from a data URL."""
    mime_type, data = split_data_url(data_url)
    return {"inline_data": {"mime_type": mime_type, "data": data}}


# =============================================================================
# Response Handling
# =============================================================================

def _error_status_text(response: requests.Response) -> str:
    """Extract the `error.status` string (e.g. RESOURCE_EXHAUSTED) if present."""
    try:
        data = response.json()
    except ValueError:
        return ""
    if isinstance(data, dict):
        return str(data.get("error", {}).get("status", ""))
    return ""


def _raise_for_status(response: requests.Response, context: str) -> None:
    """Translate a non-OK HTTP response into the matching exception type."""
    if response.ok:
        return

    code = response.status_code
    status_text = _error_status_text(response)
    message = f"Gemini API error {code} ({context}): {response.text[:500]}"
    log_api_call(context, False, f"HTTP {code} {status_text}".strip())

    if code == 429 or status_text == "RESOURCE_EXHAUSTED":
        raise GeminiQuotaError(message, code)
    if code == 503 or status_text == "UNAVAILABLE":
        raise GeminiUnavailableError(message, code)
    if code == 403 or status_text == "PERMISSION_DENIED":
        raise GeminiAccessDeniedError(message, code)
    if code >= 500:
        raise GeminiServerError(message, code)
    raise GeminiAPIError(message, code)


def _check_safety(data: dict, context: str) -> None:
    """Raise GeminiSafetyError if the prompt or any candidate was blocked."""
    block_reason = data.get("promptFeedback", {}).get("blockReason")
    if block_reason:
        log_api_call(context, False, f"Prompt blocked: {block_reason}")
        raise GeminiSafetyError(
            f"Prompt blocked by safety filters ({context}): {block_reason}",
            data.get("promptFeedback", {}).get("safetyRatings", []),
        )

    for candidate in data.get("candidates", []):
        finish_reason = candidate.get("finishReason")
        if finish_reason in SAFETY_FINISH_REASONS:
            log_api_call(context, False, f"Safety blocked: {finish_reason}")
            raise GeminiSafetyError(
                f"Content blocked by safety filters ({context}): {finish_reason}",
                candidate.get("safetyRatings", []),
            )


def _extract_inline_image_from_response(data: dict) -> Optional[GeneratedImage]:
    """
    Extract the first inline image from a Gemini JSON response.

    Handles both 'inlineData' and 'inline_data' field naming.
    """
    for candidate in data.get("candidates", []):
        content = candidate.get("content") or {}
        for part in content.get("parts") or []:
            blob = part.get("inlineData") or part.get("inline_data")
            if blob and blob.get("data"):
                mime_type = blob.get("mimeType") or blob.get("mime_type") or "image/png"
                return GeneratedImage(base64.b64decode(blob["data"]), mime_type)
    return None


def _extract_text_from_response(data: dict) -> str:
    """Join the non-thought text parts of the first candidate."""
    candidates = data.get("candidates", [])
    if not candidates:
        return ""
    parts = (candidates[0].get("content") or {}).get("parts") or []
    return "".join(p.get("text", "") for p in parts if not p.get("thought")).strip()


def _post(url: str, api_key: str, payload: dict, context: str) -> dict:
    headers = {"Content-Type": "application/json", "x-goog-api-key": api_key}
    log_debug(f"Gemini API call starting: {context}")
    try:
        response = requests.post(url, headers=headers, data=json.dumps(payload))
    except requests.RequestException as e:
        log_api_call(context, False, f"Network error: {e}")
        raise GeminiAPIError(f"Gemini request failed ({context}): {e}") from e

    _raise_for_status(response, context)
    try:
        data = response.json()
    except ValueError as e:
        log_api_call(context, False, "Response was not JSON")
        raise GeminiAPIError(f"Invalid JSON from Gemini ({context})", response.status_code) from e

    _check_safety(data, context)
    return data


# =============================================================================
# Gemini API Calls
# =============================================================================

def call_gemini_text(
    api_key: str,
    prompt: str,
    system_instruction: str = "",
    model: str = TEXT_MODEL,
    temperature: float = REFINE_TEMPERATURE,
) -> str:
    """
    Call Gemini text API and return the response text.

    Args:
        api_key: Google Gemini API key.
        prompt: User-turn text to send.
        system_instruction: Optional system instruction.
        model: Text model id.
        temperature: Sampling temperature.

    Raises:
        GeminiAPIError: If the call fails or no text comes back.
    """
    context = f"text:{model}"
    payload = {
        "contents": [{"role": "user", "parts": [{"text": prompt}]}],
        "generationConfig": {"temperature": temperature},
    }
    if system_instruction:
        payload["systemInstruction"] = {"parts": [{"text": system_instruction}]}

    data = _post(gemini_url(model), api_key, payload, context)
    result = _extract_text_from_response(data)
    if not result:
        log_api_call(context, False, "No text in response")
        raise GeminiAPIError("No text in Gemini response")

    log_api_call(context, True, f"Got {len(result)} chars")
    return result


def call_gemini_image(
    api_key: str,
    parts: List[dict],
    model: str = IMAGE_MODEL_STANDARD,
    aspect_ratio: str = "1:1",
) -> Optional[GeneratedImage]:
    """
    Call a Gemini image model with an ordered parts array.

    Returns:
        The first inline image, or None when the response carries no image.

    Raises:
        GeminiAPIError (or a subclass): If the call fails or is safety-blocked.
    """
    context = f"image:{model}"
    payload = {
        "contents": [{"parts": parts}],
        "generationConfig": {
            "responseModalities": ["TEXT", "IMAGE"],
            "imageConfig": {"aspectRatio": aspect_ratio},
        },
    }

    data = _post(gemini_url(model), api_key, payload, context)
    image = _extract_inline_image_from_response(data)
    if image is None:
        log_debug(f"Gemini response without image data: {json.dumps(data)[:500]}")
        log_api_call(context, False, "No image data in response")
        return None

    log_api_call(context, True, f"Image received ({len(image.data)} bytes, {image.mime_type})")
    return image


class GeminiClient:
    """
    Async facade over the blocking REST calls.

    Each call runs in a worker thread so several modes can wait on the
    service at the same time without blocking the event loop.
    """

    def __init__(self, api_key: str):
        if not api_key:
            raise MissingAPIKeyError(
                "API Key is missing. Please set GEMINI_API_KEY in your environment variables."
            )
        self._api_key = api_key

    async def generate_text(
        self,
        prompt: str,
        system_instruction: str = "",
        model: str = TEXT_MODEL,
        temperature: float = REFINE_TEMPERATURE,
    ) -> str:
        return await asyncio.to_thread(
            call_gemini_text, self._api_key, prompt, system_instruction, model, temperature
        )

    async def generate_image(
        self,
        parts: List[dict],
        model: str = IMAGE_MODEL_STANDARD,
        aspect_ratio: str = "1:1",
    ) -> Optional[GeneratedImage]:
        return await asyncio.to_thread(
            call_gemini_image, self._api_key, parts, model, aspect_ratio
        )
