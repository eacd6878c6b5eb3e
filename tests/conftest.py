"""Shared fixtures: a scripted transport and a recording sleep."""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

import pytest
import requests
from requests.structures import CaseInsensitiveDict

from bullhorn_auth_client import transport

CREDENTIALS = {
    "client_id": "id",
    "client_secret": "sec",
    "username": "u",
    "password": "p",
}


def make_response(
    status: int = 200,
    body: Optional[Any] = None,
    headers: Optional[Dict[str, str]] = None,
    reason: str = "OK",
) -> requests.Response:
    """Build a real ``requests.Response`` with a JSON body."""
    response = requests.Response()
    response.status_code = status
    response.reason = reason
    response.headers = CaseInsensitiveDict(headers or {})
    response._content = json.dumps(body if body is not None else {}).encode("utf-8")
    response.encoding = "utf-8"
    return response


class FakeSession:
    """Returns queued responses (or raises queued exceptions) in order.

    Once the queue is exhausted the last item is repeated.
    """

    def __init__(self, *items: Any) -> None:
        self.items: List[Any] = list(items)
        self.calls: List[Dict[str, Any]] = []

    def request(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        self.calls.append({"method": method, "url": url, **kwargs})
        index = min(len(self.calls) - 1, len(self.items) - 1)
        item = self.items[index]
        if isinstance(item, BaseException):
            raise item
        return item

    @property
    def urls(self) -> List[str]:
        return [call["url"] for call in self.calls]


@pytest.fixture
def sleeps(monkeypatch: pytest.MonkeyPatch) -> List[float]:
    """Replace ``time.sleep`` in the transport and record requested delays."""
    recorded: List[float] = []
    monkeypatch.setattr(transport.time, "sleep", recorded.append)
    return recorded
