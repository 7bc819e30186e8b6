"""
Prompt builders for Gemini API requests.

System instructions for prompt refinement, per-mode strategy text, and the
task context sent alongside the user's raw request.
"""

from typing import Dict

from ..core.models import Mode


# Target keywords / style guidance per mode
MODE_STRATEGIES: Dict[Mode, str] = {
    Mode.THUMBNAIL: "High CTR, vibrant, expressive. High contrast, bold focal subject.",
    Mode.LOGO: "Vector art, minimalist, clean shapes, white background.",
    Mode.BG_REMOVER: "Isolated on solid white background.",
    Mode.BANNER: "Wide angle, aesthetic, room for headline text.",
    Mode.POSTER: "Vertical, cinematic.",
    Mode.AVATAR: "Headshot, centered.",
    Mode.GENERAL: "High quality digital art.",
}


def _strategy_lines() -> str:
    lines = []
    for index, (mode, strategy) in enumerate(MODE_STRATEGIES.items(), start=1):
        lines.append(f"{index}. **{mode.value}**: {strategy}")
    return "\n".join(lines)


SYSTEM_INSTRUCTION_BASE = f"""
You are an expert Prompt Engineer for generative AI models.
Your task is to take a raw user description and transform it into a professional, high-fidelity image generation prompt based on the selected "App Mode".

### CORE PRINCIPLE:
**Respect the User's Intent.**
- The "App Mode" dictates the *style*, *composition*, and *technical settings*.
- The "User Input" dictates the *subject*, *action*, and *specific details*.

### IMPORTANT: TEXT RENDERING
If the user asks for text to be written, format it as: text "SALE", in bold typography.

### MODE STRATEGIES:
{_strategy_lines()}

### OUTPUT FORMAT:
Return ONLY the final refined prompt string.
"""


def build_system_instruction(learned_context: str = "") -> str:
    """
    Combine the base instruction with recalled style memory.

    The memory block comes last so that learned styles take precedence over
    the default mode strategy.
    """
    return SYSTEM_INSTRUCTION_BASE + learned_context


def build_task_context(user_input: str, mode: Mode, has_images: bool = False) -> str:
    """Build the user-turn text for a refinement call."""
    task = "Image-to-Image Prompt" if has_images else "Text-to-Image Prompt"
    return f'Task: {task}.\nApp Mode: {mode.value}\nUser Input: "{user_input}"'


def build_memory_block(examples: str) -> str:
    """Wrap formatted style references in the supervised-memory directive."""
    return f"""

============= LEARNED USER STYLES (SUPERVISED MEMORY) =============
The user has explicitly LIKED the following output styles.
You MUST treat these as the "Gold Standard" for this user's taste.

{examples}

INSTRUCTION:
1. Analyze the "You Generated Prompt" examples above.
2. Identify the recurring keywords, lighting choices, camera angles, and artistic styles (e.g., "neon", "minimalist", "hyper-realistic").
3. APPLY those exact stylistic choices to the NEW request below, unless the user specifically asks for something contradictory.
4. Do not copy the *subject* (unless requested), but COPY the *style*.
===================================================================
"""


def format_style_reference(index: int, user_input: str, refined_prompt: str) -> str:
    return (
        f"[STYLE REFERENCE {index}]\n"
        f'User Asked For: "{user_input}"\n'
        f'You Generated Prompt: "{refined_prompt}"\n'
        f"{'-' * 50}"
    )
