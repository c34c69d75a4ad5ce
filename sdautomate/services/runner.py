# sdautomate/services/runner.py
from __future__ import annotations
import asyncio
import contextlib
import random
from pathlib import Path

from ..core.config import RunContext
from ..core.logutil import get_logger
from ..core.models import JobConfig
from ..core.storage import decode_image, parse_info, resolve_seed, save_image, save_metadata
from .progress import ProgressLine, Sleep, watch_progress

logger = get_logger("runner")


class JobRunner:
    """
    Runs one config at a time: submit, watch progress while the request is in
    flight, then write every returned image (and optional metadata) in order.
    Errors from submission, decode or write propagate to the caller.
    """

    def __init__(self, client, ctx: RunContext, sleep: Sleep = asyncio.sleep,
                 rng: random.Random = None):
        self.client = client
        self.ctx = ctx
        self.sleep = sleep
        self.rng = rng
        self.line = ProgressLine(ctx.stream)

    async def _generate(self, config: JobConfig):
        submit = asyncio.create_task(asyncio.to_thread(self.client.txt2img, config))
        watch = asyncio.create_task(
            watch_progress(self.client, self.ctx, self.line, config.expected_iterations, self.sleep))
        try:
            await asyncio.wait({submit, watch}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            if not submit.done():
                submit.cancel()
            watch.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await watch
        self.line.clear()
        self.ctx.stream.write("✅ Generation complete\n")
        self.ctx.stream.flush()
        return submit.result()

    async def run(self, config: JobConfig, out_dir: Path) -> int:
        result = await self._generate(config)
        info = parse_info(result.info)

        for i, b64 in enumerate(result.images):
            raw = decode_image(b64)
            seed = resolve_seed(info, i, self.rng)
            path = save_image(out_dir, raw, seed)
            logger.info("💾 Saved: %s", path)
            if self.ctx.save_meta:
                meta = save_metadata(path, config, info, seed)
                logger.debug("📋 Metadata saved: %s", meta)
        return len(result.images)
