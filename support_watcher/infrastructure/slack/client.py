"""Slack display name lookups with a process-lifetime cache.

Names are fetched from users.info on the first miss and never refreshed.
Failed lookups are not cached so the next cycle asks Slack again.
"""

from __future__ import annotations

import threading

import requests
from pydantic import ValidationError

from support_watcher.core.config import settings
from support_watcher.core.logger import get_logger
from support_watcher.domain.models import UserInfoResponse
from support_watcher.metrics import ExporterMetrics

logger = get_logger("slack.name_resolver")


class SlackNameResolver:
    def __init__(
        self,
        bot_token: str,
        base_url: str | None = None,
        timeout: float | None = None,
        session: requests.Session | None = None,
        metrics: ExporterMetrics | None = None,
    ):
        self._bot_token = bot_token
        self.base_url = (base_url or settings.slack_api_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.http_timeout_seconds
        self.session = session or requests.Session()
        self._metrics = metrics
        self._display_name_cache: dict[str, str] = {}
        self._lock = threading.Lock()

    @property
    def cache_size(self) -> int:
        with self._lock:
            return len(self._display_name_cache)

    def cached(self, slack_id: str) -> str | None:
        with self._lock:
            return self._display_name_cache.get(slack_id)

    def resolve(self, slack_id: str) -> str | None:
        name = self.cached(slack_id)
        if name is not None:
            self._record("hit")
            return name

        name = self._lookup(slack_id)
        if name is None:
            self._record("error")
            return None

        with self._lock:
            self._display_name_cache[slack_id] = name
            size = len(self._display_name_cache)
        self._record("resolved", size)
        logger.debug("name_resolved", extra={"slack_id": slack_id, "cache_size": size})
        return name

    def _lookup(self, slack_id: str) -> str | None:
        url = f"{self.base_url}/users.info"
        try:
            response = self.session.get(
                url,
                params={"user": slack_id},
                headers={"Authorization": f"Bearer {self._bot_token}"},
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.RequestException as exc:
            logger.warning(
                "name_lookup_transport_error",
                extra={"slack_id": slack_id, "error": str(exc)},
            )
            return None

        try:
            body = UserInfoResponse.model_validate_json(response.content)
        except ValidationError as exc:
            logger.warning(
                "name_lookup_decode_error",
                extra={"slack_id": slack_id, "error": str(exc)},
            )
            return None

        if not body.ok or body.user is None:
            logger.error(
                "name_lookup_rejected",
                extra={"slack_id": slack_id, "error": body.error or "missing user"},
            )
            return None

        profile = body.user.profile
        name = profile.display_name or profile.real_name
        if not name:
            logger.error(
                "name_lookup_rejected",
                extra={"slack_id": slack_id, "error": "empty profile name"},
            )
            return None
        return name

    def _record(self, result: str, size: int | None = None) -> None:
        if self._metrics is None:
            return
        self._metrics.name_lookups.labels(result).inc()
        if size is not None:
            self._metrics.name_cache_entries.set(size)

    def close(self) -> None:
        self.session.close()
