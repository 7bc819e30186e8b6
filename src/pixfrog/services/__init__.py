"""
Generation services.

Contains the prompt refinement and image generation steps that the
session orchestrator chains together.
"""

from .generation import ImageGenerator
from .refinement import PromptRefiner

__all__ = [
    "ImageGenerator",
    "PromptRefiner",
]
