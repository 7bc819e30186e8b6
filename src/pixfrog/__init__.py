"""
PixFrog AI

Turns short natural-language requests into finished images with Google
Gemini: a prompt-refinement call followed by an image-generation call,
tuned per tool mode and biased by the styles the user has liked before.

Package Structure:
    core/      - Data models (modes, messages, configs, learned patterns)
    api/       - Gemini REST client, retry policy, errors, prompt builders
    memory/    - Persisted style memory and its storage backends
    services/  - Prompt refinement and image generation
    session.py - Per-mode conversation orchestrator
"""

__version__ = "1.2.0"

# Lazy imports so `import pixfrog` does not pull in requests/Pillow
def __getattr__(name):
    if name == "Session":
        from .session import Session
        return Session
    if name == "Mode":
        from .core.models import Mode
        return Mode
    if name == "StyleMemory":
        from .memory.style_memory import StyleMemory
        return StyleMemory
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

__all__ = [
    "__version__",
    "Mode",
    "Session",
    "StyleMemory",
]
