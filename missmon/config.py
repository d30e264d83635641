from __future__ import annotations

import argparse
import os
from argparse import RawDescriptionHelpFormatter
from dataclasses import dataclass
from typing import Mapping, Optional

try:
    import tomllib  # py3.11+
except ImportError:  # pragma: no cover
    import tomli as tomllib  # type: ignore

from .constants import (
    ENV_ALERT_COOLDOWN,
    ENV_APP_ENV,
    ENV_MISS_TOLERANCE,
    ENV_MISS_TOLERANCE_PERIOD,
    ENV_RPC,
    ENV_SAMPLE_INTERVAL,
    ENV_TELEGRAM_BOT_ID,
    ENV_TELEGRAM_CHAT,
    ENV_TELEGRAM_TOKEN,
    ENV_VALOPER,
    USAGE_EXAMPLES,
)

DEFAULT_FETCH_TIMEOUT_S = 10.0

# argparse dest -> environment variable
ENV_KEYS = {
    "miss_tolerance": ENV_MISS_TOLERANCE,
    "miss_tolerance_period": ENV_MISS_TOLERANCE_PERIOD,
    "sample_interval": ENV_SAMPLE_INTERVAL,
    "alert_cooldown": ENV_ALERT_COOLDOWN,
    "rpc": ENV_RPC,
    "valoper": ENV_VALOPER,
    "telegram_bot_id": ENV_TELEGRAM_BOT_ID,
    "telegram_token": ENV_TELEGRAM_TOKEN,
    "telegram_chat": ENV_TELEGRAM_CHAT,
}

FLAG_KEYS = ("once", "dry_run", "json", "verbose", "no_banner")


class ConfigurationError(ValueError):
    """A required setting is missing or invalid. Fatal at startup."""


@dataclass(frozen=True)
class MonitorSettings:
    """Validated, immutable settings for one monitor process."""
    miss_tolerance: int
    miss_tolerance_period_s: int
    sample_interval_s: int
    alert_cooldown_s: int
    rpc: str = ""
    valoper: str = ""
    fetch_timeout_s: float = DEFAULT_FETCH_TIMEOUT_S
    telegram_bot_id: str = ""
    telegram_token: str = ""
    telegram_chat: str = ""
    dry_run: bool = False
    once: bool = False


def load_toml_config(path: str) -> dict:
    """Load TOML configuration from path."""
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except OSError as e:
        raise ConfigurationError(f"cannot read config file {path}: {e.strerror or e}") from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"invalid TOML in {path}: {e}") from e


def _get_cfg(cfg: dict, section: str, key: str, default=None):
    sec = cfg.get(section, {})
    if not isinstance(sec, dict):
        return default
    return sec.get(key, default)


def config_defaults_from(cfg: dict) -> dict:
    """Map TOML config onto argparse destinations."""
    return {
        "miss_tolerance": _get_cfg(cfg, "monitor", "miss_tolerance"),
        "miss_tolerance_period": _get_cfg(cfg, "monitor", "miss_tolerance_period"),
        "sample_interval": _get_cfg(cfg, "monitor", "sample_interval"),
        "alert_cooldown": _get_cfg(cfg, "monitor", "alert_cooldown"),
        "rpc": _get_cfg(cfg, "source", "rpc"),
        "valoper": _get_cfg(cfg, "source", "valoper"),
        "fetch_timeout": _get_cfg(cfg, "source", "fetch_timeout"),
        "telegram_bot_id": _get_cfg(cfg, "telegram", "bot_id"),
        "telegram_token": _get_cfg(cfg, "telegram", "token"),
        "telegram_chat": _get_cfg(cfg, "telegram", "chat"),
        "json": _get_cfg(cfg, "logging", "json"),
        "verbose": _get_cfg(cfg, "logging", "verbose"),
        "no_banner": _get_cfg(cfg, "logging", "no_banner"),
    }


def env_defaults(environ: Optional[Mapping[str, str]] = None) -> dict:
    """Map environment variables onto argparse destinations."""
    if environ is None:
        environ = os.environ
    out = {dest: environ.get(var) for dest, var in ENV_KEYS.items()}
    # APP_ENV=test runs a single check and exits.
    if (environ.get(ENV_APP_ENV) or "").strip().lower() == "test":
        out["once"] = True
    return out


def parse_flag(name: str, value) -> bool:
    """Interpret an on/off setting. Unset means off; unknown spellings are an error."""
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        val = value.strip().lower()
        if val in ("1", "true", "yes", "on"):
            return True
        if val in ("0", "false", "no", "off", ""):
            return False
    raise ConfigurationError(f"{name} must be a boolean, got {value!r}")


def resolve_args(args, environ: Optional[Mapping[str, str]] = None):
    """Backfill unset CLI values from the environment, then the TOML file.

    CLI arguments win over environment variables, which win over the config
    file. Only values that are unset/empty on the CLI are filled in.
    """
    layers = [env_defaults(environ)]
    if getattr(args, "config", None):
        layers.append(config_defaults_from(load_toml_config(args.config)))
    for layer in layers:
        for k, v in layer.items():
            if v is None:
                continue
            if getattr(args, k, None) in (None, ""):
                setattr(args, k, v)
    for k in FLAG_KEYS:
        setattr(args, k, parse_flag(k, getattr(args, k, None)))
    if getattr(args, "fetch_timeout", None) in (None, ""):
        args.fetch_timeout = DEFAULT_FETCH_TIMEOUT_S
    return args


def _parse_int(name: str, value, minimum: int, errors: list) -> Optional[int]:
    if value is None or (isinstance(value, str) and not value.strip()):
        errors.append(f"{name} is required")
        return None
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        errors.append(f"{name} must be an integer, got {value!r}")
        return None
    try:
        n = int(value.strip()) if isinstance(value, str) else int(value)
    except (TypeError, ValueError):
        errors.append(f"{name} must be an integer, got {value!r}")
        return None
    if n < minimum:
        errors.append(f"{name} must be >= {minimum}, got {n}")
        return None
    return n


def _parse_str(name: str, value, errors: list) -> str:
    text = "" if value is None else str(value).strip()
    if not text:
        errors.append(f"{name} is required")
    return text


def build_settings(args) -> MonitorSettings:
    """Validate resolved arguments into MonitorSettings.

    Every problem is collected so the operator sees them all at once.

    Raises:
        ConfigurationError: one or more settings are missing or invalid.
    """
    errors: list = []
    tolerance = _parse_int("miss_tolerance (MISS_TOLERANCE)", args.miss_tolerance, 0, errors)
    period = _parse_int("miss_tolerance_period (MISS_TOLERANCE_PERIOD)", args.miss_tolerance_period, 1, errors)
    interval = _parse_int("sample_interval (SLEEP)", args.sample_interval, 1, errors)
    cooldown = _parse_int("alert_cooldown (ALERT_SLEEP_PERIOD)", args.alert_cooldown, 1, errors)
    rpc = _parse_str("rpc (RPC)", args.rpc, errors)
    valoper = _parse_str("valoper (VALOPER_ADDRESS)", args.valoper, errors)

    fetch_timeout = DEFAULT_FETCH_TIMEOUT_S
    try:
        fetch_timeout = float(args.fetch_timeout)
        if isinstance(args.fetch_timeout, bool) or fetch_timeout <= 0:
            raise ValueError
    except (TypeError, ValueError):
        errors.append(f"fetch_timeout must be a positive number, got {args.fetch_timeout!r}")

    dry_run = bool(args.dry_run)
    if dry_run:
        bot_id, token, chat = (str(getattr(args, k) or "") for k in ("telegram_bot_id", "telegram_token", "telegram_chat"))
    else:
        bot_id = _parse_str("telegram_bot_id (TELEGRAM_BOT_ID)", args.telegram_bot_id, errors)
        token = _parse_str("telegram_token (TELEGRAM_TOKEN)", args.telegram_token, errors)
        chat = _parse_str("telegram_chat (TELEGRAM_CHAT)", args.telegram_chat, errors)

    if errors:
        raise ConfigurationError("invalid configuration: " + "; ".join(errors))

    return MonitorSettings(
        miss_tolerance=tolerance,
        miss_tolerance_period_s=period,
        sample_interval_s=interval,
        alert_cooldown_s=cooldown,
        rpc=rpc,
        valoper=valoper,
        fetch_timeout_s=fetch_timeout,
        telegram_bot_id=bot_id,
        telegram_token=token,
        telegram_chat=chat,
        dry_run=dry_run,
        once=bool(args.once),
    )


def _mask(value) -> Optional[str]:
    if not value:
        return None
    return "***"


def resolved_config_dict(args) -> dict:
    return {
        "monitor": {
            "miss_tolerance": args.miss_tolerance,
            "miss_tolerance_period": args.miss_tolerance_period,
            "sample_interval": args.sample_interval,
            "alert_cooldown": args.alert_cooldown,
            "once": args.once,
            "dry_run": args.dry_run,
        },
        "source": {
            "rpc": args.rpc,
            "valoper": args.valoper,
            "fetch_timeout": args.fetch_timeout,
        },
        "telegram": {
            "bot_id": args.telegram_bot_id,
            "token": _mask(args.telegram_token),
            "chat": args.telegram_chat,
        },
        "logging": {
            "json": args.json,
            "verbose": args.verbose,
            "no_banner": args.no_banner,
        },
    }


def build_arg_parser():
    """Construct the CLI argument parser for the daemon."""
    ap = argparse.ArgumentParser(
        prog="miss-monitor",
        description="Alert when a validator misses too many oracle price votes.",
        epilog=USAGE_EXAMPLES,
        formatter_class=RawDescriptionHelpFormatter,
    )
    # Settings default to None so resolve_args can backfill them from env/TOML.
    ap.add_argument("--miss-tolerance", help="Misses within the window that trigger an alert (MISS_TOLERANCE).")
    ap.add_argument("--miss-tolerance-period",
                    help="Seconds without new misses after which the window resets (MISS_TOLERANCE_PERIOD).")
    ap.add_argument("--sample-interval", help="Seconds between counter checks (SLEEP).")
    ap.add_argument("--alert-cooldown", help="Minimum seconds between two alerts (ALERT_SLEEP_PERIOD).")
    ap.add_argument("--rpc", help="Base URL of the node's REST endpoint (RPC).")
    ap.add_argument("--valoper", help="Validator operator address (VALOPER_ADDRESS).")
    ap.add_argument("--fetch-timeout", help=f"HTTP timeout for counter requests in seconds (default: {DEFAULT_FETCH_TIMEOUT_S:g}).")
    ap.add_argument("--telegram-bot-id", help="Telegram bot id (TELEGRAM_BOT_ID).")
    ap.add_argument("--telegram-token", help="Telegram bot token (TELEGRAM_TOKEN).")
    ap.add_argument("--telegram-chat", help="Telegram chat id to alert (TELEGRAM_CHAT).")

    ap.add_argument("--once", action="store_true", default=None,
                    help="Run a single check and exit (also APP_ENV=test).")
    ap.add_argument("--dry-run", action="store_true", default=None,
                    help="Log alerts instead of sending them; Telegram settings become optional.")
    json_group = ap.add_mutually_exclusive_group()
    json_group.add_argument("--json", dest="json", action="store_true", default=None, help="Emit JSON log events.")
    json_group.add_argument("--no-json", dest="json", action="store_false", help="Disable JSON log output.")
    ap.add_argument("--verbose", action="store_true", default=None, help="Log every check, not only state changes.")
    ap.add_argument("--no-banner", action="store_true", default=None, help="Disable the startup banner.")

    ap.add_argument("--config", help="Path to a TOML config file. CLI args and env override config values.")
    ap.add_argument("--no-dotenv", action="store_true", help="Do not load ./.env.")
    ap.add_argument("--print-config", action="store_true", help="Print the resolved configuration and exit.")
    ap.add_argument("--doctor", action="store_true", help="Fetch the counter once, report, and exit.")
    ap.add_argument("--test-notify", action="store_true", help="With --doctor: also send a test alert.")
    ap.add_argument("--version", action="store_true", help="Print version and exit.")
    return ap
