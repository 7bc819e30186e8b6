"""
Saving generated images to disk with a YAML metadata sidecar.
"""

import base64
from datetime import datetime
from io import BytesIO
from pathlib import Path
from typing import Optional

import yaml
from PIL import Image

from .api.gemini_client import split_data_url
from .core.models import ChatMessage, GenerationConfig, Mode
from .logging_utils import log_info

# Formats written as-is; everything else is converted to PNG
_NATIVE_FORMATS = {"image/png": ("PNG", ".png"), "image/jpeg": ("JPEG", ".jpg"), "image/webp": ("WEBP", ".webp")}


def get_unique_stem(directory: Path, desired_name: str) -> str:
    """
    Ensure a file stem is unique within directory by appending a counter.

    Returns:
        Unique stem (may have _2, _3, etc. appended).
    """
    candidate = desired_name
    counter = 1
    while any(directory.glob(f"{candidate}.*")):
        counter += 1
        candidate = f"{desired_name}_{counter}"
    return candidate


def save_generated_image(
    message: ChatMessage,
    mode: Mode,
    output_dir: Path,
    config: Optional[GenerationConfig] = None,
) -> Path:
    """
    Write the image carried by an assistant message plus a `.yml` sidecar.

    Args:
        message: Assistant message with a generated image.
        mode: Mode the image was generated in.
        output_dir: Destination folder (created if missing).
        config: Generation settings to record in the sidecar.

    Returns:
        Path to the saved image.

    Raises:
        ValueError: If the message carries no image.
    """
    if not message.images:
        raise ValueError("Message has no image to save")

    mime_type, data = split_data_url(message.images[0])
    img = Image.open(BytesIO(base64.b64decode(data)))
    img.load()

    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    created = datetime.fromtimestamp(message.timestamp / 1000)
    stem = get_unique_stem(output_dir, f"{mode.slug}_{created:%Y%m%d_%H%M%S}")

    fmt, suffix = _NATIVE_FORMATS.get(mime_type, ("PNG", ".png"))
    if fmt == "JPEG" and img.mode not in ("RGB", "L"):
        img = img.convert("RGB")
    image_path = output_dir / f"{stem}{suffix}"
    img.save(image_path, format=fmt)

    meta = {
        "mode": mode.value,
        "created": created.isoformat(timespec="seconds"),
        "size": list(img.size),
    }
    if config is not None:
        meta["aspect_ratio"] = config.aspect_ratio
        meta["high_quality"] = config.high_quality
    if message.metadata is not None:
        meta.update(message.metadata.to_dict())

    sidecar = output_dir / f"{stem}.yml"
    with sidecar.open("w", encoding="utf-8") as f:
        yaml.dump(meta, f, sort_keys=False, allow_unicode=True)

    log_info(f"Saved {image_path}")
    return image_path
