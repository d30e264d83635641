from __future__ import annotations

import json
import os
import signal
import sys
import threading

from dotenv import load_dotenv

from .config import (
    ConfigurationError,
    build_arg_parser,
    build_settings,
    resolve_args,
    resolved_config_dict,
)
from .constants import ENV_MISS_TOLERANCE, VERSION
from .doctor import run_doctor
from .logging import JsonLogger
from .monitor import MissMonitor
from .notify import LogNotifier, TelegramNotifier
from .source import RpcMissCounterSource


def build_notifier(settings, logger):
    if settings.dry_run:
        return LogNotifier(logger)
    return TelegramNotifier(
        settings.telegram_bot_id,
        settings.telegram_token,
        settings.telegram_chat,
    )


def main(argv=None):
    """CLI entry point. Resolves configuration, wires the monitor, and runs the loop."""
    argv = sys.argv[1:] if argv is None else list(argv)
    ap = build_arg_parser()
    args = ap.parse_args(argv)

    if args.version:
        print(VERSION)
        return 0

    # Already-set environment variables win over .env.
    if not args.no_dotenv:
        load_dotenv(".env", override=False)

    if not argv and not os.getenv(ENV_MISS_TOLERANCE):
        ap.print_help()
        return 0

    try:
        resolve_args(args)
    except ConfigurationError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2

    if args.print_config:
        print(json.dumps(resolved_config_dict(args), indent=2, sort_keys=True))
        return 0

    # A plain doctor run only reads the counter; Telegram is needed for --test-notify.
    if args.doctor and not args.test_notify:
        args.dry_run = True

    try:
        settings = build_settings(args)
    except ConfigurationError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2

    logger = JsonLogger(enable_json=args.json, verbose=args.verbose)
    source = RpcMissCounterSource(settings.rpc, settings.valoper, timeout_s=settings.fetch_timeout_s)
    notifier = build_notifier(settings, logger)

    if args.doctor:
        return run_doctor(source, notifier, test_notify=args.test_notify)

    if not args.no_banner:
        print(f"miss-monitor {VERSION}")
        # Structured startup event for log scraping
        logger.emit(
            "startup",
            version=VERSION,
            endpoint=source.url,
            miss_tolerance=settings.miss_tolerance,
            miss_tolerance_period_s=settings.miss_tolerance_period_s,
            sample_interval_s=settings.sample_interval_s,
            alert_cooldown_s=settings.alert_cooldown_s,
            notifier=type(notifier).__name__,
            once=settings.once,
        )

    stop = threading.Event()
    signal.signal(signal.SIGINT, lambda *_: stop.set())
    signal.signal(signal.SIGTERM, lambda *_: stop.set())

    mon = MissMonitor(source=source, notifier=notifier, logger=logger, settings=settings)
    return mon.run(once=settings.once, stop_evt=stop)


if __name__ == "__main__":
    raise SystemExit(main())
