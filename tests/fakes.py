"""Test doubles for HTTP sessions and the OpenAI client."""

from __future__ import annotations

from types import SimpleNamespace
from typing import Any

import requests


class FakeResponse:
    def __init__(self, payload: Any = None, *, text: str = "", status_code: int = 200) -> None:
        self._payload = payload
        self.text = text
        self.status_code = status_code

    def json(self) -> Any:
        if self._payload is None:
            raise ValueError("no JSON body")
        return self._payload

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


class FakeHttpSession:
    """Routes GET requests by URL substring; unmatched URLs return 404."""

    def __init__(self, routes: dict[str, Any] | None = None) -> None:
        self.routes = dict(routes or {})
        self.calls: list[dict[str, Any]] = []

    def get(self, url: str, params=None, headers=None, timeout=None) -> FakeResponse:
        self.calls.append({"url": url, "params": dict(params or {}), "headers": headers, "timeout": timeout})
        for fragment, outcome in self.routes.items():
            if fragment in url or fragment in str(params or {}):
                if isinstance(outcome, Exception):
                    raise outcome
                if callable(outcome):
                    return outcome(url, params)
                return outcome
        return FakeResponse({}, status_code=404)


class FakeResponsesAPI:
    def __init__(self, replies: list[Any]) -> None:
        self._replies = list(replies)
        self.calls: list[dict[str, Any]] = []

    def create(self, **kwargs: Any) -> Any:
        self.calls.append(kwargs)
        if not self._replies:
            raise RuntimeError("No fake reply configured")
        reply = self._replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return SimpleNamespace(output_text=reply)


class FakeOpenAIClient:
    def __init__(self, replies: list[Any]) -> None:
        self.responses = FakeResponsesAPI(replies)

