#!/usr/bin/env python3
"""
CBBI Monitor - CLI.
Usage:
  python run_monitor.py              # Show the last saved CBBI value
  python run_monitor.py --refresh    # Fetch now, save and show
  python run_monitor.py --daemon     # Background refresh every 4h + push topic log
"""
from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path

# Ensure project root is on path
ROOT = Path(__file__).resolve().parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from loguru import logger

from config import load_config
from data.fetcher import get_fetcher
from data.worker import PeriodicScheduler, schedule_refresh_worker
from display import DisplayState, IndicatorScreen, render_line, state_to_dict
from display.formatting import HIGH_THRESHOLD, LOW_THRESHOLD
from notifications import PushListener
from storage import cache_key, get_store


def build_screen(config: dict, render) -> IndicatorScreen:
    display_cfg = config.get("display", {})
    return IndicatorScreen(
        fetcher=get_fetcher(config),
        store=get_store(config),
        render=render,
        key=cache_key(config),
        high_threshold=float(display_cfg.get("high_threshold", HIGH_THRESHOLD)),
        low_threshold=float(display_cfg.get("low_threshold", LOW_THRESHOLD)),
    )


async def run_daemon(config: dict, render) -> None:
    """Show the cached value, keep the periodic refresh running, log push messages."""
    screen = build_screen(config, render)
    screen.on_visible()

    scheduler = PeriodicScheduler()
    tasks = [schedule_refresh_worker(scheduler, screen.fetcher, screen.store, config)]

    telegram_cfg = config.get("telegram", {})
    if telegram_cfg.get("enabled", True) and telegram_cfg.get("bot_token"):
        listener = PushListener(
            bot_token=telegram_cfg["bot_token"],
            topic=str(telegram_cfg.get("topic", "all_users")),
        )
        if await listener.subscribe():
            tasks.append(asyncio.create_task(listener.run(float(telegram_cfg.get("poll_seconds", 30)))))
    else:
        logger.warning("Telegram disabled or missing bot_token; push topic will not be followed.")

    try:
        await asyncio.gather(*tasks)
    finally:
        scheduler.cancel_all()


def main():
    parser = argparse.ArgumentParser(description="CBBI Monitor")
    parser.add_argument("--config", default=None, help="Path to settings.yaml")
    parser.add_argument("--refresh", action="store_true", help="Fetch the latest value now")
    parser.add_argument("--daemon", action="store_true", help="Run the periodic refresh loop")
    parser.add_argument("--json", action="store_true", help="Output the final state as JSON")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose logging")
    args = parser.parse_args()

    if not args.verbose:
        logger.remove()
        logger.add(sys.stderr, level="INFO")

    config = load_config(args.config)
    shown: list[DisplayState] = []

    def render(state: DisplayState) -> None:
        shown.append(state)
        if not args.json:
            print(render_line(state, color=sys.stdout.isatty()))

    if args.daemon:
        try:
            asyncio.run(run_daemon(config, render))
        except KeyboardInterrupt:
            logger.info("Stopped.")
        return

    screen = build_screen(config, render)
    if args.refresh:
        asyncio.run(screen.refresh())
    else:
        screen.on_visible()
    if args.json:
        print(json.dumps(state_to_dict(shown[-1])))


if __name__ == "__main__":
    main()
