# sdautomate/core/storage.py
from __future__ import annotations
import base64
import binascii
import datetime as _dt
import io
import json
import random
import time
from pathlib import Path
from typing import Optional

from PIL import Image, UnidentifiedImageError

from .errors import ImageDecodeError
from .logutil import get_logger
from .models import JobConfig

logger = get_logger("storage")

SEED_RANGE = 1_000_000_000


def dated_output_dir(base: Path, today: Optional[_dt.date] = None) -> Path:
    """{base}/{YYYY-MM-DD}, created if missing."""
    p = Path(base) / (today or _dt.date.today()).isoformat()
    p.mkdir(parents=True, exist_ok=True)
    return p


def parse_info(raw: Optional[str]) -> dict:
    """The txt2img `info` field is JSON inside a string; anything unparseable becomes {}."""
    if not raw:
        return {}
    try:
        data = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning("Could not parse info data")
        return {}
    if not isinstance(data, dict):
        logger.warning("Could not parse info data")
        return {}
    return data


def resolve_seed(info: dict, index: int, rng: random.Random = None) -> int:
    base = info.get("seed")
    if isinstance(base, int) and not isinstance(base, bool):
        return base + index
    return (rng or random).randrange(SEED_RANGE)


def decode_image(b64: str) -> bytes:
    """Base64 → PNG bytes, checked to be a readable image."""
    try:
        raw = base64.b64decode(b64, validate=True)
    except (binascii.Error, TypeError, ValueError) as e:
        raise ImageDecodeError(f"image payload is not valid base64: {e}") from e
    try:
        with Image.open(io.BytesIO(raw)) as img:
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        raise ImageDecodeError(f"image payload is not a readable image: {e}") from e
    return raw


def _write_atomic(out_path: Path, data: bytes) -> Path:
    tmp = out_path.with_suffix(out_path.suffix + ".part")
    tmp.write_bytes(data)
    tmp.replace(out_path)
    return out_path


def save_image(out_dir: Path, raw: bytes, seed: int, timestamp_ms: Optional[int] = None) -> Path:
    ts = timestamp_ms if timestamp_ms is not None else time.time_ns() // 1_000_000
    return _write_atomic(Path(out_dir) / f"{ts}-{seed}.png", raw)


def save_metadata(image_path: Path, config: JobConfig, info: dict, seed: int) -> Path:
    """Sibling <stem>.meta.json next to the PNG."""
    meta = {
        "config": config.payload(),
        "response": {
            "info": info,
            "timestamp": _dt.datetime.now(_dt.timezone.utc).isoformat(),
            "filename": image_path.name,
            "seed": seed,
        },
    }
    meta_path = image_path.with_name(f"{image_path.stem}.meta.json")
    body = json.dumps(meta, indent=2, ensure_ascii=False).encode("utf-8")
    return _write_atomic(meta_path, body)
