from __future__ import annotations

from .notify import NotifyError, format_alert
from .source import FetchError


def run_doctor(source, notifier, test_notify: bool = False) -> int:
    """Run connectivity checks (counter endpoint, optionally the alert channel) and print diagnostics.

    Returns 0 when every check passed, 1 otherwise. Never starts the monitor loop.
    """
    print("Doctor Mode:")
    print(f"  endpoint: {getattr(source, 'url', source)}")
    ok = True

    try:
        count = source.fetch()
    except FetchError as e:
        print(f"  FAIL: counter fetch: {e}")
        ok = False
    else:
        print(f"  OK: miss_counter={count}")

    if test_notify:
        text = "[test] " + format_alert(0)
        try:
            notifier.send(text)
        except NotifyError as e:
            print(f"  FAIL: test alert: {e}")
            ok = False
        else:
            print(f"  OK: test alert sent via {type(notifier).__name__}")
    else:
        print("  SKIP: alert channel (use --test-notify to send a test alert)")

    print("Doctor complete." if ok else "Doctor found problems.")
    return 0 if ok else 1
