from __future__ import annotations

VERSION = "1.0.0"

SYSTEM_NAME = "Kujira Price tracker"

ALERT_TEMPLATE = (
    "\U0001F6A8 {system} monitor alert!\n"
    " You are missing too many blocks. Miss counter exceeded: {miss_difference}"
)

MISS_ENDPOINT = "{rpc}/oracle/validators/{valoper}/miss"

TELEGRAM_API = "https://api.telegram.org/bot{bot_id}:{token}/sendMessage"

# Environment variable names, kept compatible with existing .env files.
ENV_MISS_TOLERANCE = "MISS_TOLERANCE"
ENV_MISS_TOLERANCE_PERIOD = "MISS_TOLERANCE_PERIOD"
ENV_SAMPLE_INTERVAL = "SLEEP"
ENV_ALERT_COOLDOWN = "ALERT_SLEEP_PERIOD"
ENV_RPC = "RPC"
ENV_VALOPER = "VALOPER_ADDRESS"
ENV_TELEGRAM_BOT_ID = "TELEGRAM_BOT_ID"
ENV_TELEGRAM_TOKEN = "TELEGRAM_TOKEN"
ENV_TELEGRAM_CHAT = "TELEGRAM_CHAT"
ENV_APP_ENV = "APP_ENV"


USAGE_EXAMPLES = """\
Usage examples:
  # Run with settings from ./.env (MISS_TOLERANCE, SLEEP, RPC, ...)
  python miss-monitor.py

  # Explicit settings on the command line
  python miss-monitor.py --rpc https://rest.kujira.example --valoper kujiravaloper1... \\
      --miss-tolerance 5 --miss-tolerance-period 3600 --sample-interval 60 --alert-cooldown 300

  # TOML config, JSON logs, alerts only logged (no Telegram)
  python miss-monitor.py --config /etc/missmon.toml --json --dry-run

  # Run a single check and exit
  python miss-monitor.py --once

  # Connectivity check (fetch the counter once, send a test alert)
  python miss-monitor.py --doctor --test-notify
"""
