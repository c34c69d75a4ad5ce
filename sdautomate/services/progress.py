# sdautomate/services/progress.py
"""
Progress polling, rendering and the between-jobs readiness wait.

All three read the same /sdapi/v1/progress endpoint. Rendering is pure;
polling and waiting are coroutines that run the blocking client call in a
worker thread so the submission task can progress alongside them.
"""
from __future__ import annotations
import asyncio
import math
from typing import Awaitable, Callable, TextIO

from ..core.config import RunContext
from ..core.errors import TransportError
from ..core.logutil import get_logger
from ..core.models import ProgressSnapshot

logger = get_logger("progress")

BAR_WIDTH = 30
FILL, EMPTY = "█", "░"
CLEAR_LINE = "\x1b[2K\r"

Sleep = Callable[[float], Awaitable[None]]


def filled_cells(progress: float, width: int = BAR_WIDTH) -> int:
    # half-up rounding, clamped so filled + empty == width
    return min(width, max(0, math.floor(progress * width + 0.5)))


def progress_bar(progress: float, width: int = BAR_WIDTH) -> str:
    filled = filled_cells(progress, width)
    return f"[{FILL * filled}{EMPTY * (width - filled)}] {progress * 100:.1f}%"


def render_progress(snap: ProgressSnapshot, expected_iterations: int = 1) -> str:
    st = snap.state
    current_job = st.job_no or 0
    total_jobs = st.job_count or expected_iterations
    current_iter = min(current_job + 1, total_jobs)

    iter_bar = progress_bar(snap.progress)
    step = f" Step {st.sampling_step}/{st.sampling_steps}" if st.sampling_steps > 0 else ""
    eta_s = snap.eta_relative or 0
    eta = f" ETA: {eta_s:.1f}s" if eta_s > 0 else ""

    if total_jobs > 1:
        overall = progress_bar((current_job + snap.progress) / total_jobs)
        return f"Iter {current_iter}/{total_jobs}: {iter_bar}{step} | Overall: {overall}{eta}"
    return f"{iter_bar}{step}{eta}"


async def poll(client) -> ProgressSnapshot:
    """One status round-trip. Raises TransportError; no retry here."""
    return await asyncio.to_thread(client.progress)


class ProgressLine:
    """Single terminal line, redrawn in place."""

    def __init__(self, stream: TextIO):
        self.stream = stream

    def draw(self, text: str):
        self.stream.write(CLEAR_LINE + text)
        self.stream.flush()

    def clear(self):
        self.stream.write(CLEAR_LINE)
        self.stream.flush()


async def watch_progress(client, ctx: RunContext, line: ProgressLine,
                         expected_iterations: int = 1, sleep: Sleep = asyncio.sleep):
    """Poll and redraw until cancelled. Poll failures are logged and retried more slowly."""
    while True:
        try:
            snap = await poll(client)
        except TransportError as e:
            logger.debug("progress poll failed: %s", e)
            await sleep(ctx.timing.poll_retry_interval)
            continue
        line.draw(render_progress(snap, expected_iterations))
        await sleep(ctx.timing.poll_interval)


async def wait_for_server_ready(client, ctx: RunContext, sleep: Sleep = asyncio.sleep):
    """Block until the server reports zero progress and no active job. Never gives up."""
    while True:
        try:
            snap = await poll(client)
        except TransportError as e:
            logger.warning("Could not check server status (%s), waiting %.0f seconds...",
                           e, ctx.timing.ready_retry_interval)
            await sleep(ctx.timing.ready_retry_interval)
            continue
        if snap.idle:
            logger.info("Server is ready for next request")
            return
        logger.info("Server busy, waiting...")
        await sleep(ctx.timing.ready_interval)
