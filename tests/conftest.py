from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable

import httpx
import pytest

from instagrap.proxy import RemoteApi
from instagrap.state import StateManager, StateStore

API_BASE = "https://scrape.test"
CLASSIFY_API_BASE = "https://classify.test"


@pytest.fixture
def state_path(tmp_path: Path) -> Path:
    return tmp_path / "config" / "instagram_scraper_state.json"


@pytest.fixture
def store(state_path: Path) -> StateStore:
    return StateStore(state_path)


@pytest.fixture
def manager(store: StateStore) -> StateManager:
    return StateManager(store, lock_timeout=1.0)


def make_api(handler: Callable[[httpx.Request], httpx.Response]) -> RemoteApi:
    return RemoteApi(
        api_base=API_BASE,
        classify_api_base=CLASSIFY_API_BASE,
        transport=httpx.MockTransport(handler),
    )


class RecordingHandler:
    """MockTransport handler that answers from a route table and keeps every request."""

    def __init__(self, routes: dict[tuple[str, str], Any]):
        self.routes = routes
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        answer = self.routes.get((request.method, request.url.path))
        if answer is None:
            return httpx.Response(404, text="not found")
        if callable(answer):
            return answer(request)
        return answer

    def body(self, index: int = -1) -> Any:
        return json.loads(self.requests[index].content)
