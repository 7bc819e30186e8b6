"""
Core data layer.

Contains the data models shared by the services and the session
orchestrator, independent of any remote API or user interface.
"""

from .models import (
    ChatMessage,
    GeneratedImage,
    GenerationConfig,
    GenerationState,
    LearnedPattern,
    MessageMetadata,
    Mode,
    Role,
)

__all__ = [
    "ChatMessage",
    "GeneratedImage",
    "GenerationConfig",
    "GenerationState",
    "LearnedPattern",
    "MessageMetadata",
    "Mode",
    "Role",
]
