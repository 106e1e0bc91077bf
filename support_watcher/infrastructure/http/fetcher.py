from __future__ import annotations

from typing import TypeVar

import requests
from pydantic import BaseModel, ValidationError

from support_watcher.core.config import settings
from support_watcher.domain.models import HealthSnapshot, StatsSnapshot

ModelT = TypeVar("ModelT", bound=BaseModel)


class FetchError(Exception):
    kind = "fetch"

    def __init__(self, url: str, detail: str):
        super().__init__(f"{self.kind} error fetching {url}: {detail}")
        self.url = url
        self.detail = detail


class TransportError(FetchError):
    """Connection, timeout, DNS failure or non-2xx status."""

    kind = "transport"


class DecodeError(FetchError):
    """Body is not JSON or does not match the expected shape."""

    kind = "decode"


class StatsFetcher:
    """Single GET against the bot, decoded into a pydantic model.

    No retries here; the poll loop owns retry timing.
    """

    def __init__(
        self,
        health_url: str | None = None,
        stats_url: str | None = None,
        timeout: float | None = None,
        session: requests.Session | None = None,
    ):
        self.health_url = health_url or settings.health_url
        self.stats_url = stats_url or settings.stats_url
        self.timeout = timeout if timeout is not None else settings.http_timeout_seconds
        self.session = session or requests.Session()

    def fetch(self, url: str, model: type[ModelT]) -> ModelT:
        try:
            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            raise TransportError(url, str(exc)) from exc
        # JSON parsing is kept out of the block above: requests' JSONDecodeError
        # is itself a RequestException.
        try:
            return model.model_validate_json(response.content)
        except ValidationError as exc:
            raise DecodeError(url, str(exc)) from exc

    def fetch_health(self) -> HealthSnapshot:
        return self.fetch(self.health_url, HealthSnapshot)

    def fetch_stats(self) -> StatsSnapshot:
        return self.fetch(self.stats_url, StatsSnapshot)

    def close(self) -> None:
        self.session.close()
