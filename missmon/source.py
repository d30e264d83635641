from __future__ import annotations

from typing import Optional

import requests

from .constants import MISS_ENDPOINT


class FetchError(RuntimeError):
    """The miss counter could not be fetched or parsed."""


def parse_miss_counter(payload) -> int:
    """Extract the miss counter from the oracle endpoint's JSON body.

    The node reports the counter as a decimal string (``{"miss_counter": "12"}``);
    plain integers are accepted too.
    """
    if not isinstance(payload, dict) or "miss_counter" not in payload:
        raise ValueError("response has no 'miss_counter' field")
    raw = payload["miss_counter"]
    if isinstance(raw, bool) or not isinstance(raw, (int, str)):
        raise ValueError(f"miss_counter has unexpected type {type(raw).__name__}")
    value = int(raw)
    if value < 0:
        raise ValueError(f"miss_counter is negative: {value}")
    return value


class RpcMissCounterSource:
    """Reads a validator's oracle miss counter from a node's REST endpoint."""
    def __init__(self, rpc: str, valoper: str, timeout_s: float = 10.0, session: Optional[requests.Session] = None):
        self.url = MISS_ENDPOINT.format(rpc=rpc.rstrip("/"), valoper=valoper)
        self._timeout = timeout_s
        self._session = session or requests.Session()

    def fetch(self) -> int:
        """Return the current miss counter.

        Raises:
            FetchError: transport failure, HTTP error status or unparseable body.
        """
        try:
            resp = self._session.get(self.url, timeout=self._timeout)
            resp.raise_for_status()
            return parse_miss_counter(resp.json())
        except requests.RequestException as e:
            raise FetchError(f"{self.url}: error fetching miss counter: {e}") from e
        except ValueError as e:
            # Also covers JSON decode errors from resp.json().
            raise FetchError(f"{self.url}: unparseable miss counter: {e}") from e
