"""
Supervised style memory.

Saves prompt pairs the user explicitly liked and replays the most recent
ones for a mode as a style directive for the refinement model. The store
never raises to its callers: failures are logged and treated as "nothing
learned" or "nothing to recall".
"""

import json
from typing import Callable, List, Optional

from ..config import (
    MEMORY_BLOB_VERSION,
    MEMORY_MAX_PATTERNS,
    MEMORY_RECALL_LIMIT,
    MEMORY_STORAGE_KEY,
)
from ..api.prompt_builders import build_memory_block, format_style_reference
from ..core.models import LearnedPattern, Mode, now_ms
from ..logging_utils import log_error, log_info, log_warning
from .storage import KeyValueStorage


class StyleMemory:
    """
    Capped, deduplicated log of approved (user input, refined prompt) pairs.

    Args:
        storage: Backing key-value storage.
        key: Storage key holding the versioned blob.
        max_patterns: Global cap; the oldest pattern is evicted first.
        recall_limit: How many patterns `recall` replays per mode.
        clock: Returns epoch milliseconds, injectable for tests.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        key: str = MEMORY_STORAGE_KEY,
        max_patterns: int = MEMORY_MAX_PATTERNS,
        recall_limit: int = MEMORY_RECALL_LIMIT,
        clock: Callable[[], int] = now_ms,
    ):
        self.storage = storage
        self.key = key
        self.max_patterns = max_patterns
        self.recall_limit = recall_limit
        self._clock = clock

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def _decode(self, raw: Optional[str]) -> List[LearnedPattern]:
        """Parse a stored blob. Corrupt JSON reads as empty; bad records are skipped."""
        if not raw:
            return []
        try:
            blob = json.loads(raw)
        except ValueError:
            log_warning(f"Style memory blob '{self.key}' is corrupt; treating as empty")
            return []

        # Unversioned blobs were a bare list of records
        if isinstance(blob, list):
            records = blob
        elif isinstance(blob, dict):
            records = blob.get("patterns", [])
        else:
            return []

        patterns = []
        for record in records if isinstance(records, list) else []:
            try:
                patterns.append(LearnedPattern.from_record(record))
            except (KeyError, ValueError, TypeError, AttributeError):
                log_warning(f"Skipping malformed style memory record: {record!r}")
        return patterns

    def _encode(self, patterns: List[LearnedPattern]) -> str:
        return json.dumps(
            {
                "version": MEMORY_BLOB_VERSION,
                "patterns": [p.to_record() for p in patterns],
            },
            ensure_ascii=False,
        )

    def load(self) -> List[LearnedPattern]:
        """
        Read every stored pattern, oldest first.

        Raises whatever the storage raises; corrupt content reads as empty.
        """
        return self._decode(self.storage.load(self.key))

    def save(self, patterns: List[LearnedPattern]) -> None:
        self.storage.save(self.key, self._encode(patterns))

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def learn(self, mode: Mode, user_input: str, refined_prompt: str) -> bool:
        """
        Remember an approved refinement.

        Returns:
            True if a new pattern was stored; False for duplicates and
            storage failures.
        """
        try:
            patterns = self.load()
            if any(p.user_input == user_input and p.refined_prompt == refined_prompt for p in patterns):
                return False

            patterns.append(LearnedPattern(mode, user_input, refined_prompt, self._clock()))
            while len(patterns) > self.max_patterns:
                patterns.pop(0)

            self.save(patterns)
        except Exception as e:
            log_error("Failed to save to style memory", str(e))
            return False

        log_info(f"[Supervised Learning] Learned new pattern for {mode.value}")
        return True

    def recent(self, mode: Mode) -> List[LearnedPattern]:
        """Most recent patterns for a mode, newest first, at most `recall_limit`."""
        try:
            patterns = self.load()
        except Exception as e:
            log_error("Failed to recall style memory", str(e))
            return []
        matching = [p for p in reversed(patterns) if p.mode is mode]
        return matching[:self.recall_limit]

    def recall(self, mode: Mode) -> str:
        """
        Render the recent patterns for a mode as a style directive.

        Returns an empty string when there is nothing to recall.
        """
        patterns = self.recent(mode)
        if not patterns:
            return ""
        examples = "\n".join(
            format_style_reference(i, p.user_input, p.refined_prompt)
            for i, p in enumerate(patterns, start=1)
        )
        return build_memory_block(examples)
