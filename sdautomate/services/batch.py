# sdautomate/services/batch.py
from __future__ import annotations
import asyncio
import json
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from ..core.config import RunContext
from ..core.errors import ConfigLoadError
from ..core.logutil import get_logger
from ..core.models import JobConfig
from ..core.storage import dated_output_dir
from .progress import Sleep, progress_bar, wait_for_server_ready
from .runner import JobRunner

logger = get_logger("batch")

SUMMARY_BAR_WIDTH = 40


@dataclass
class BatchSummary:
    total: int
    completed: int
    images: int
    cancelled: bool
    output_dir: Path

    @property
    def remaining(self) -> int:
        return self.total - self.completed


def load_configs(path: Path) -> List[JobConfig]:
    """Every non-blank line must be a JSON object; one bad line rejects the file."""
    try:
        text = Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigLoadError(f"cannot read configs file {path}: {e}") from e

    configs = []
    for n, line in enumerate(text.splitlines(), 1):
        if not line.strip():
            continue
        try:
            obj = json.loads(line)
        except ValueError as e:
            raise ConfigLoadError(f"{path}:{n}: invalid JSON: {e}") from e
        if not isinstance(obj, dict):
            raise ConfigLoadError(f"{path}:{n}: expected a JSON object, got {type(obj).__name__}")
        configs.append(JobConfig.from_line(obj))
    return configs


class BatchOrchestrator:
    def __init__(self, client, ctx: RunContext, sleep: Sleep = asyncio.sleep,
                 runner: Optional[JobRunner] = None):
        self.client = client
        self.ctx = ctx
        self.sleep = sleep
        self.runner = runner or JobRunner(client, ctx, sleep=sleep)

    async def run(self) -> BatchSummary:
        ctx = self.ctx
        configs = load_configs(ctx.configs_file)
        logger.debug("Loaded %d configurations from %s", len(configs), ctx.configs_file)

        out_dir = dated_output_dir(ctx.output_dir)
        logger.debug("Output directory: %s", out_dir)

        total = len(configs)
        completed = images = 0
        cancelled = False
        for i, config in enumerate(configs):
            if ctx.cancel.stop_requested:
                cancelled = True
                logger.warning("🛑 Graceful exit requested. Stopping after %d configs (%d not run).",
                               i, total - i)
                break

            logger.info("\n📸 %s Config %d/%d", progress_bar(i / total, SUMMARY_BAR_WIDTH), i + 1, total)
            if not ctx.disable_log_config:
                logger.debug("📋 Config: %s", json.dumps(config.payload(), indent=2, ensure_ascii=False))

            count = await self.runner.run(config, out_dir)
            completed += 1
            images += count
            logger.info("✅ Completed config %d/%d - Generated %d images", i + 1, total, count)

            if i < total - 1:
                await wait_for_server_ready(self.client, ctx, self.sleep)

        summary = BatchSummary(total, completed, images, cancelled, out_dir)
        bar = progress_bar(completed / total if total else 1.0, SUMMARY_BAR_WIDTH)
        if cancelled:
            logger.info("\n🛑 %s %d/%d configs completed, %d images.", bar, completed, total, images)
        else:
            logger.info("\n🎉 %s All configs completed! %d images.", bar, images)
        logger.info("📁 Images saved to: %s", out_dir)
        return summary
