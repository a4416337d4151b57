from __future__ import annotations

import asyncio
import contextlib
import signal
import traceback
from typing import Any

from parley.app.config import resolve_args
from parley.app.diagnostics import hint_for_exception, summarize_exception, user_message
from parley.app.logging_setup import setup_app_logger
from parley.app.runtime import ParleyRuntime
from parley.app.services import build_services
from parley.audio.mic import SoundDeviceMicSource
from parley.errors import MicError


async def _run(args: Any, logger) -> int:
    loop = asyncio.get_running_loop()
    stop = asyncio.Event()
    # Not available on Windows; Ctrl+C then surfaces as KeyboardInterrupt.
    with contextlib.suppress(NotImplementedError):
        loop.add_signal_handler(signal.SIGINT, stop.set)
        loop.add_signal_handler(signal.SIGTERM, stop.set)

    services = build_services(args, dispatch=loop.call_soon_threadsafe, logger=logger)
    runtime = ParleyRuntime(args, services, logger=logger)
    print("Parley is listening. Speak a sentence in each of your two languages to begin.")
    print("Press Ctrl+C to stop.")
    await runtime.run(stop)
    return 0


def main(argv: list[str] | None = None) -> int:
    args = resolve_args(argv)
    logger, _log_dir, log_path = setup_app_logger(debug=bool(args.debug))
    logger.info("app_start", extra={"config_path": str(getattr(args, "config", "")), "argv": argv or []})

    if args.list_devices:
        print(SoundDeviceMicSource.list_devices())
        return 0

    try:
        return asyncio.run(_run(args, logger))
    except KeyboardInterrupt:
        logger.info("app_keyboard_interrupt")
        return 0
    except MicError as e:
        logger.error("mic_unavailable", extra={"error": str(e)})
        print(user_message(e, str(args.ui_language)))
        return 1
    except Exception:
        detail = traceback.format_exc()
        logger.exception("app_crash")
        summary = summarize_exception(detail)
        print(f"Parley stopped: {summary}")
        print(hint_for_exception(summary))
        print(f"Logs: {log_path}")
        return 1
    finally:
        logger.info("app_quit")


if __name__ == "__main__":
    raise SystemExit(main())
