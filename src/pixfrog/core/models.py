"""
Data models for the generation engine.

Contains the mode enumeration and the dataclasses that carry conversation
state, generation settings and learned style patterns between the
services and the session orchestrator.
"""

import base64
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class Mode(Enum):
    """Generation intent. The value is the display name shown to users."""

    THUMBNAIL = "YouTube Thumbnail"
    LOGO = "Logo Design"
    BG_REMOVER = "Background Remover"
    BANNER = "Social Media Banner"
    POSTER = "Poster Design"
    AVATAR = "Profile Avatar"
    GENERAL = "General Generation"

    @property
    def slug(self) -> str:
        """Short lowercase name used on the command line (e.g. "bg_remover")."""
        return self.name.lower()

    @classmethod
    def from_name(cls, name: str) -> "Mode":
        """
        Resolve a mode from its slug, enum name or display name.

        Raises:
            ValueError: If nothing matches.
        """
        wanted = name.strip().lower().replace("-", "_").replace(" ", "_")
        for mode in cls:
            if wanted in (mode.slug, mode.value.lower().replace(" ", "_")):
                return mode
        raise ValueError(f"Unknown mode: {name!r}")


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class GenerationState(Enum):
    """Per-mode orchestration state."""

    IDLE = "idle"
    GENERATING = "generating"


@dataclass
class GenerationConfig:
    """Aspect ratio and quality tier used for the next generation."""

    aspect_ratio: str = "1:1"
    high_quality: bool = False


@dataclass
class MessageMetadata:
    """
    Prompt provenance attached to assistant messages that produced an image.

    Only `liked` changes after creation, and only from False to True.
    """

    original_prompt: str
    final_prompt: str
    liked: bool = False

    def mark_liked(self) -> bool:
        """Flip `liked` to True. Returns False if it was already set."""
        if self.liked:
            return False
        self.liked = True
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "originalPrompt": self.original_prompt,
            "finalPrompt": self.final_prompt,
            "liked": self.liked,
        }


@dataclass
class ChatMessage:
    """
    A single entry in a mode's conversation history.

    User messages carry reference images as data URLs; assistant messages
    carry the generated image (also as a data URL) or an error text.
    """

    role: Role
    content: str
    images: List[str] = field(default_factory=list)
    timestamp: int = field(default_factory=now_ms)
    metadata: Optional[MessageMetadata] = None

    @property
    def is_error(self) -> bool:
        """True for assistant replies that carry no image."""
        return self.role is Role.ASSISTANT and not self.images


@dataclass(frozen=True)
class LearnedPattern:
    """A refinement the user explicitly approved."""

    mode: Mode
    user_input: str
    refined_prompt: str
    timestamp: int

    def to_record(self) -> Dict[str, Any]:
        """Serialize to the persisted record layout."""
        return {
            "mode": self.mode.value,
            "userInput": self.user_input,
            "refinedPrompt": self.refined_prompt,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "LearnedPattern":
        """
        Parse a persisted record.

        Raises:
            KeyError, ValueError, TypeError: If the record is malformed.
        """
        return cls(
            mode=Mode(record["mode"]),
            user_input=str(record["userInput"]),
            refined_prompt=str(record["refinedPrompt"]),
            timestamp=int(record.get("timestamp", 0)),
        )


@dataclass
class GeneratedImage:
    """Raw image payload returned by the image model."""

    data: bytes
    mime_type: str = "image/png"

    def to_data_url(self) -> str:
        encoded = base64.b64encode(self.data).decode("utf-8")
        return f"data:{self.mime_type};base64,{encoded}"
