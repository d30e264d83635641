import threading
from dataclasses import replace

import pytest
import requests

from missmon.config import ENV_KEYS, MonitorSettings
from missmon.constants import ENV_APP_ENV
from missmon.monitor import MissMonitor
from missmon.notify import NotifyError


class CapturingLogger:
    """Minimal logger that matches the monitor's .emit(event, **fields) contract."""
    def __init__(self):
        self.events = []

    def emit(self, event: str, **fields):
        self.events.append((event, fields))

    def debug(self, event: str, **fields):
        self.events.append((event, fields))

    def names(self):
        return [e for e, _ in self.events]

    def of(self, event):
        return [f for e, f in self.events if e == event]


class FakeClock:
    def __init__(self, start=1000.0):
        self.now = float(start)

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class FakeSource:
    """Counter source fed from a script of values; exception instances are raised."""
    url = "http://node.test/oracle/validators/kujiravaloper1test/miss"

    def __init__(self, values=()):
        self.values = list(values)
        self.calls = 0

    def push(self, *values):
        self.values.extend(values)

    def fetch(self):
        self.calls += 1
        item = self.values.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item


class FakeNotifier:
    def __init__(self, fail=False):
        self.fail = fail
        self.sent = []

    def send(self, text):
        self.sent.append(text)
        if self.fail:
            raise NotifyError("telegram request failed: ConnectionError")


class StopAfter(threading.Event):
    """Stop event whose wait() advances a fake clock and stops after n waits."""
    def __init__(self, clock, n):
        super().__init__()
        self.clock = clock
        self.n = n
        self.timeouts = []

    def wait(self, timeout=None):
        self.timeouts.append(timeout)
        self.clock.advance(timeout or 0)
        if len(self.timeouts) >= self.n:
            self.set()
        return self.is_set()


class FakeResponse:
    def __init__(self, status_code=200, payload=None, reason="OK", invalid_json=False):
        self.status_code = status_code
        self._payload = payload
        self.reason = reason
        self._invalid_json = invalid_json

    def json(self):
        if self._invalid_json:
            raise ValueError("Expecting value: line 1 column 1 (char 0)")
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Server Error: {self.reason}", response=self)


class FakeSession:
    """Stands in for requests.Session; records calls and replays a response or raises."""
    def __init__(self, response=None, exc=None):
        self.response = response
        self.exc = exc
        self.calls = []

    def _do(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        if self.exc is not None:
            raise self.exc
        return self.response

    def get(self, url, **kwargs):
        return self._do("GET", url, **kwargs)

    def post(self, url, **kwargs):
        return self._do("POST", url, **kwargs)


@pytest.fixture
def logger():
    return CapturingLogger()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings():
    return MonitorSettings(
        miss_tolerance=5,
        miss_tolerance_period_s=3600,
        sample_interval_s=60,
        alert_cooldown_s=300,
    )


@pytest.fixture
def make_monitor(logger, clock, settings):
    def _make(values=(), notifier=None, **overrides):
        cfg = replace(settings, **overrides)
        return MissMonitor(
            source=FakeSource(values),
            notifier=notifier or FakeNotifier(),
            logger=logger,
            settings=cfg,
            clock=clock,
        )
    return _make


@pytest.fixture
def stop_after(clock):
    def _make(n):
        return StopAfter(clock, n)
    return _make


@pytest.fixture
def fake_session():
    return FakeSession


@pytest.fixture
def fake_response():
    return FakeResponse


@pytest.fixture
def clean_env(monkeypatch):
    """Remove monitor settings from the process environment."""
    for var in list(ENV_KEYS.values()) + [ENV_APP_ENV]:
        # setenv first so teardown also removes values loaded from .env.
        monkeypatch.setenv(var, "")
        monkeypatch.delenv(var)
    return monkeypatch


@pytest.fixture
def failing_notifier():
    return FakeNotifier(fail=True)
