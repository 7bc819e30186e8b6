"""
API module for Gemini interactions.

Handles all communication with Google Gemini API including:
- Authentication and configuration
- Prompt refinement and image generation calls
- Retry policy and error classification
- Prompt building
"""

from .exceptions import (
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

from .gemini_client import (
    GeminiClient,
    call_gemini_image,
    call_gemini_text,
    get_api_key,
    has_api_key,
    image_part,
    load_config,
    load_image_as_data_url,
    save_config,
    split_data_url,
    to_data_url,
)

from .prompt_builders import (
    MODE_STRATEGIES,
    build_system_instruction,
    build_task_context,
)

from .retry import RetryDecision, RetryPolicy

__all__ = [
    # Errors
    "ErrorKind",
    "GeminiAccessDeniedError",
    "GeminiAPIError",
    "GeminiQuotaError",
    "GeminiSafetyError",
    "GeminiServerError",
    "GeminiUnavailableError",
    "MissingAPIKeyError",
    "classify_error",
    # Client functions
    "GeminiClient",
    "call_gemini_image",
    "call_gemini_text",
    "get_api_key",
    "has_api_key",
    "image_part",
    "load_config",
    "load_image_as_data_url",
    "save_config",
    "split_data_url",
    "to_data_url",
    # Prompt builders
    "MODE_STRATEGIES",
    "build_system_instruction",
    "build_task_context",
    # Retry
    "RetryDecision",
    "RetryPolicy",
]
