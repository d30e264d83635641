#!/usr/bin/env python3
#
# Oracle price-vote miss monitor
#
# Polls a validator node's oracle miss counter and sends a Telegram alert
# when the validator misses too many price votes within a rolling window.
# Alerts are rate limited by a cooldown; the window resets once misses stop
# accumulating for the configured tolerance period.
#

from __future__ import annotations

from missmon.cli import main


if __name__ == "__main__":
    raise SystemExit(main())
