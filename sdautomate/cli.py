# -*- coding: utf-8 -*-
import argparse
import asyncio
import os
import signal
import sys

from . import __version__
from .core import config as _cfg
from .core.config import build_context
from .core.errors import SDAutomateError
from .core.logutil import get_logger, setup_logging
from .image.sd_client import SDClient
from .keyboard import KeyboardController
from .services.batch import BatchOrchestrator

EXIT_OK = 0
EXIT_FORCED = 1
EXIT_FATAL = 2

_exit = os._exit


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="sd-automate", description="Stable Diffusion API automation tool")
    ap.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    ap.add_argument("--configs-file", default=_cfg.CONFIGS_FILE, help="Path to configs JSONL file")
    ap.add_argument("--output-dir", default=_cfg.OUTPUT_DIR, help="Output directory for images")
    ap.add_argument("--base-url", default=_cfg.BASE_URL, help="WebUI API base URL")
    ap.add_argument("--save-meta", action="store_true", help="Save metadata files")
    ap.add_argument("--disable-log-config", action="store_true", help="Disable config logging")
    ap.add_argument("--log-file", default=_cfg.LOG_FILE, help="Also write a rotating log file here")
    ap.add_argument("-v", "--verbose", action="store_true", help="Verbose logging")
    return ap


def force_exit(keys: KeyboardController):
    """SIGINT: leave now. A blocked submission thread would otherwise hold up interpreter shutdown."""
    get_logger().error("\n❌ Force exit")
    keys.restore()
    _exit(EXIT_FORCED)


async def _run(orchestrator: BatchOrchestrator, keys: KeyboardController):
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, force_exit, keys)
    except (NotImplementedError, RuntimeError):  # Windows or not the main thread
        pass
    return await orchestrator.run()


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    ctx = build_context(args)
    setup_logging(ctx.verbose, ctx.log_file)
    log = get_logger()

    keys = KeyboardController(ctx.cancel)
    keys.start()
    log.info("🚀 Starting Stable Diffusion automation...")
    log.debug("Press 'z' to gracefully exit after current config")

    client = SDClient(ctx)
    try:
        asyncio.run(_run(BatchOrchestrator(client, ctx), keys))
    except KeyboardInterrupt:
        log.error("\n❌ Force exit")
        return EXIT_FORCED
    except (SDAutomateError, OSError) as e:
        log.error("❌ Error generating images: %s", e)
        return EXIT_FATAL
    finally:
        keys.restore()
        client.close()
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
