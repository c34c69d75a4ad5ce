# sdautomate/core/config.py
from __future__ import annotations
import os
import pathlib
import sys
import threading
from dataclasses import dataclass, field
from typing import Optional, TextIO

try:
    import yaml
except Exception:
    yaml = None  # settings.yaml is optional

ROOT = pathlib.Path(__file__).resolve().parents[2]

# Defaults (overridable via env, then CLI flags)
BASE_URL     = os.getenv("SD_WEBUI_URL", "http://localhost:7860")
CONFIGS_FILE = os.getenv("CONFIGS_FILE", "prompts/configs.jsonl")
OUTPUT_DIR   = os.getenv("OUTPUT_DIR", "out")
LOG_FILE     = os.getenv("SD_AUTOMATE_LOG_FILE", "")
SETTINGS     = pathlib.Path(os.getenv("SD_AUTOMATE_SETTINGS", str(ROOT / "configs" / "settings.yaml")))

TIMING_DEFAULTS = {
    "sd_timeout": 600.0,
    "progress_timeout": 5.0,
    "poll_interval": 0.5,
    "poll_retry_interval": 1.0,
    "ready_interval": 2.0,
    "ready_retry_interval": 3.0,
}


def _read_yaml(path: pathlib.Path) -> dict:
    if not path.exists() or yaml is None:
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        return data if isinstance(data, dict) else {}
    except (OSError, yaml.YAMLError):
        return {}


def load_settings(path: Optional[pathlib.Path] = None) -> dict:
    """
    Return timing knobs from configs/settings.yaml merged over the defaults.
    Accepts either a `defaults:` block or a flat map; unknown keys are ignored.
    """
    raw = _read_yaml(path or SETTINGS)
    if isinstance(raw.get("defaults"), dict):
        raw = raw["defaults"]
    out = dict(TIMING_DEFAULTS)
    for k in TIMING_DEFAULTS:
        if k in raw:
            try:
                out[k] = float(raw[k])
            except (TypeError, ValueError):
                pass
    return out


class CancelToken:
    """Two-state signal: continue, or stop after the current config. One-way."""

    def __init__(self):
        self._event = threading.Event()

    def request_stop(self) -> bool:
        """Flip to stop; returns False if a stop was already requested."""
        if self._event.is_set():
            return False
        self._event.set()
        return True

    @property
    def stop_requested(self) -> bool:
        return self._event.is_set()


@dataclass
class Timing:
    sd_timeout: float = TIMING_DEFAULTS["sd_timeout"]
    progress_timeout: float = TIMING_DEFAULTS["progress_timeout"]
    poll_interval: float = TIMING_DEFAULTS["poll_interval"]
    poll_retry_interval: float = TIMING_DEFAULTS["poll_retry_interval"]
    ready_interval: float = TIMING_DEFAULTS["ready_interval"]
    ready_retry_interval: float = TIMING_DEFAULTS["ready_retry_interval"]


@dataclass
class RunContext:
    base_url: str = BASE_URL
    configs_file: pathlib.Path = pathlib.Path(CONFIGS_FILE)
    output_dir: pathlib.Path = pathlib.Path(OUTPUT_DIR)
    verbose: bool = False
    save_meta: bool = False
    disable_log_config: bool = False
    log_file: str = LOG_FILE
    timing: Timing = field(default_factory=Timing)
    cancel: CancelToken = field(default_factory=CancelToken)
    stream: TextIO = field(default_factory=lambda: sys.stdout)

    @property
    def txt2img_url(self) -> str:
        return f"{self.base_url}/sdapi/v1/txt2img"

    @property
    def progress_url(self) -> str:
        return f"{self.base_url}/sdapi/v1/progress"


def normalize_host(host: str) -> str:
    host = host or BASE_URL
    return host[:-1] if host.endswith("/") else host


def build_context(args, settings: Optional[dict] = None) -> RunContext:
    """Build the run context from parsed CLI args (argparse already applied env defaults)."""
    s = settings if settings is not None else load_settings()
    return RunContext(
        base_url=normalize_host(args.base_url),
        configs_file=pathlib.Path(args.configs_file),
        output_dir=pathlib.Path(args.output_dir),
        verbose=bool(args.verbose),
        save_meta=bool(args.save_meta),
        disable_log_config=bool(args.disable_log_config),
        log_file=args.log_file or "",
        timing=Timing(**s),
    )
