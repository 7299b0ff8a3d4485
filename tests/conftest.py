"""Shared fixtures for the subscriber tests."""

from collections.abc import Callable

import httpx
import pytest

from websub.subscriptions.config import SubscriberSettings
from websub.subscriptions.database import DatabaseService

FEED_URL = "https://example.org/feed"
HUB_URL = "https://hub.example.com/"

FEED_HTML = f"""<!DOCTYPE html>
<html>
  <head>
    <title>Example feed</title>
    <link rel="self" href="{FEED_URL}">
    <link rel="hub" href="{HUB_URL}">
  </head>
  <body><p>Hello</p></body>
</html>
"""


class FakeWeb:
    """Stand-in for the topic and hub servers behind an httpx.MockTransport."""

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], Callable[[httpx.Request], httpx.Response]] = {}
        self.requests: list[httpx.Request] = []

    def on(self, method: str, url: str, responder: Callable[[httpx.Request], httpx.Response]) -> None:
        self.routes[(method, url)] = responder

    def page(self, url: str, body: str, content_type: str = "text/html", headers: dict | None = None) -> None:
        headers = {"content-type": content_type, **(headers or {})}
        self.on("GET", url, lambda request: httpx.Response(200, text=body, headers=headers))

    def hub(self, url: str, status_code: int = 202, body: str = "") -> None:
        self.on("POST", url, lambda request: httpx.Response(status_code, text=body))

    def requests_to(self, method: str, url: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and str(r.url) == url]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        responder = self.routes.get((request.method, str(request.url)))
        if responder is None:
            return httpx.Response(404, text="not found")
        return responder(request)


@pytest.fixture
def settings():
    """Settings pointing at an in-memory database."""
    return SubscriberSettings(host="http://testserver", database_dsn="sqlite://")


@pytest.fixture
def database(settings):
    """A fresh in-memory subscription store."""
    db = DatabaseService(settings.database_dsn)
    db.create_tables()
    yield db
    db.engine.dispose()


@pytest.fixture
def web():
    """Fake topic and hub servers with the example feed already published."""
    fake = FakeWeb()
    fake.page(FEED_URL, FEED_HTML)
    fake.hub(HUB_URL)
    return fake


@pytest.fixture
def http_client(web):
    """An httpx client wired to the fake web."""
    return httpx.AsyncClient(transport=httpx.MockTransport(web))
