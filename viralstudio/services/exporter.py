"""Export of a finished timeline: scene JSON and a zip of the scene images."""

import io
import json
import logging
import re
import time
import zipfile
from pathlib import Path
from typing import Optional, Sequence

from PIL import Image

from viralstudio.models.schemas import TimelineItem
from viralstudio.services.image_generator import decode_data_uri

logger = logging.getLogger(__name__)

TIMELINE_JSON_NAME = "timeline_adegan.json"
IMAGES_ZIP_NAME = "timeline_images.zip"


def sanitize_timeline_filename(time_range: Optional[str]) -> str:
    """Turn "0s - 5s" into "0_sampai_5_detik"."""
    if not time_range:
        return f"scene_{int(time.time() * 1000)}"
    stem = time_range.replace("s", "").strip()
    stem = re.sub(r"\s*-\s*", "_sampai_", stem)
    stem = re.sub(r"\s", "_", stem)
    return f"{stem}_detik"


def timeline_to_json(timeline: Sequence[TimelineItem]) -> str:
    """Scene descriptors only; generation state and images are left out."""
    scenes = [item.to_scene().model_dump(by_alias=True) for item in timeline]
    return json.dumps(scenes, indent=2, ensure_ascii=False)


def _as_png(image_url: str) -> bytes:
    image_bytes, mime_type = decode_data_uri(image_url)
    if mime_type == "image/png":
        return image_bytes
    img = Image.open(io.BytesIO(image_bytes))
    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    return buffer.getvalue()


def timeline_images_zip(timeline: Sequence[TimelineItem]) -> bytes:
    """
    Zip every generated scene image, named after its time range.

    Scenes without an image are skipped.
    """
    buffer = io.BytesIO()
    count = 0
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
        for item in timeline:
            if not item.image_url:
                continue
            archive.writestr(f"{sanitize_timeline_filename(item.time_range)}.png", _as_png(item.image_url))
            count += 1
    logger.info(f"Zipped {count} scene images")
    return buffer.getvalue()


def save_export(data: bytes | str, output_dir: Path, filename: str) -> Path:
    output_dir.mkdir(parents=True, exist_ok=True)
    path = output_dir / filename
    if isinstance(data, str):
        path.write_text(data, encoding="utf-8")
    else:
        path.write_bytes(data)
    logger.info(f"Exported {path}")
    return path
