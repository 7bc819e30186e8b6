#!/usr/bin/env python3
"""
config.py

All global paths, constants, and static tables for the PixFrog generation engine.
"""

import os
from pathlib import Path
from typing import Dict, List, Tuple

from .core.models import Mode

# ═══════════════════════════════════════════════════════════════════════════════
# APPLICATION INFO
# ═══════════════════════════════════════════════════════════════════════════════
APP_NAME = "PixFrog AI"
APP_VERSION = "1.2.0"


def get_data_dir() -> Path:
    """
    Get the per-user data directory (memory store, logs).

    PIXFROG_HOME overrides the default ~/.pixfrog location.
    """
    override = os.environ.get("PIXFROG_HOME")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".pixfrog"


def get_default_output_dir() -> Path:
    """Folder for saved images when none is configured: ./pixfrog_output at call time."""
    return Path.cwd() / OUTPUT_DIR_NAME


# Paths for configuration and data files
CONFIG_PATH = Path.home() / ".pixfrog_config.json"
DATA_DIR = get_data_dir()
OUTPUT_DIR_NAME = "pixfrog_output"

# Environment variables checked for the Gemini credential, in order
API_KEY_ENV_VARS: Tuple[str, ...] = ("GEMINI_API_KEY", "API_KEY")
API_KEY_PAGE_URL = "https://aistudio.google.com/app/apikey"

# ═══════════════════════════════════════════════════════════════════════════════
# GEMINI API
# ═══════════════════════════════════════════════════════════════════════════════
GEMINI_API_BASE = "https://generativelanguage.googleapis.com/v1beta/models"

TEXT_MODEL = "gemini-2.5-flash"
IMAGE_MODEL_STANDARD = "gemini-2.5-flash-image"
IMAGE_MODEL_HIGH = "gemini-3-pro-image-preview"

REFINE_TEMPERATURE = 0.7


def gemini_url(model: str) -> str:
    """Build the generateContent endpoint for a model id."""
    return f"{GEMINI_API_BASE}/{model}:generateContent"


# ═══════════════════════════════════════════════════════════════════════════════
# RETRY POLICY
# ═══════════════════════════════════════════════════════════════════════════════
# Free-tier quota errors usually ask for ~15s; wait a little longer.
QUOTA_COOLDOWN_SECONDS = 18.0
UNAVAILABLE_DELAY_SECONDS = 5.0

REFINE_RETRIES = 1
GENERATION_RETRIES = 2

# ═══════════════════════════════════════════════════════════════════════════════
# STYLE MEMORY
# ═══════════════════════════════════════════════════════════════════════════════
MEMORY_STORAGE_KEY = "pixfrog_brain_v1"
MEMORY_BLOB_VERSION = 1
MEMORY_MAX_PATTERNS = 100
MEMORY_RECALL_LIMIT = 5

# ═══════════════════════════════════════════════════════════════════════════════
# MODE TABLES
# ═══════════════════════════════════════════════════════════════════════════════
ASPECT_RATIOS: List[str] = ["1:1", "16:9", "9:16", "3:4", "4:3"]

# (aspect ratio, high quality) applied whenever the mode changes
MODE_DEFAULTS: Dict[Mode, Tuple[str, bool]] = {
    Mode.THUMBNAIL: ("16:9", True),   # Pro for better text/composition
    Mode.BANNER: ("16:9", True),
    Mode.POSTER: ("3:4", True),
    Mode.LOGO: ("1:1", True),         # Pro for sharp details
    Mode.AVATAR: ("1:1", True),
    Mode.BG_REMOVER: ("1:1", False),  # Flash is good for edits
    Mode.GENERAL: ("1:1", False),
}

# Prompts used when refinement leaves nothing to generate from.
TEXT_FALLBACK_PROMPTS: Dict[Mode, str] = {
    Mode.BG_REMOVER: "Isolate the subject on white background.",
}
TEXT_FALLBACK_DEFAULT = "High quality image."

REFERENCE_FALLBACK_PROMPTS: Dict[Mode, str] = {
    Mode.BG_REMOVER: "Isolate the main subject on a solid white background. Do not change the subject.",
    Mode.THUMBNAIL: "Make this into an exciting YouTube thumbnail. High contrast, expressive.",
    Mode.LOGO: "Turn this into a minimalist vector logo.",
}
REFERENCE_FALLBACK_DEFAULT = "Enhance this image, high quality."
