"""Poll loop: fetch health and stats from the bot and project them onto metrics."""

from __future__ import annotations

import threading
import time
from typing import Callable, Iterable

from support_watcher.core.config import settings
from support_watcher.core.logger import get_logger
from support_watcher.domain.models import HealthSnapshot, StatsSnapshot, TopUserEntry
from support_watcher.infrastructure.http.fetcher import FetchError, StatsFetcher
from support_watcher.infrastructure.slack.client import SlackNameResolver
from support_watcher.metrics import ExporterMetrics, MetricSink
from support_watcher.utils.retry import Backoff

logger = get_logger("support_watcher.poller")


class PollLoop:
    def __init__(
        self,
        fetcher: StatsFetcher,
        sink: MetricSink,
        resolver: SlackNameResolver | None = None,
        metrics: ExporterMetrics | None = None,
        interval: float | None = None,
        backoff: Backoff | None = None,
        prune_stale_series: bool | None = None,
        sleep: Callable[[float], object] | None = None,
    ):
        self.fetcher = fetcher
        self.sink = sink
        self.resolver = resolver
        self.metrics = metrics
        self.interval = (
            interval if interval is not None else settings.poll_interval_seconds
        )
        self.backoff = backoff or Backoff(
            base_delay=settings.poll_error_backoff_seconds,
            multiplier=settings.poll_error_backoff_multiplier,
            max_delay=settings.poll_error_backoff_max_seconds,
            jitter=settings.poll_error_backoff_jitter,
        )
        self.prune_stale_series = (
            prune_stale_series
            if prune_stale_series is not None
            else settings.prune_stale_user_series
        )
        self._sleep = sleep
        self.consecutive_failures = 0

    def run_cycle(self) -> float:
        """Run one health + stats pass and return the delay before the next."""
        cycle_start = time.perf_counter()
        try:
            try:
                health = self.fetcher.fetch_health()
            except FetchError as exc:
                return self._failed("health", exc)
            self.apply_health(health)

            try:
                stats = self.fetcher.fetch_stats()
            except FetchError as exc:
                return self._failed("stats", exc)
            self.apply_stats(stats)
        finally:
            if self.metrics is not None:
                self.metrics.poll_cycle.observe(time.perf_counter() - cycle_start)

        if self.consecutive_failures:
            logger.info(
                "poll_recovered", extra={"failures": self.consecutive_failures}
            )
        self.consecutive_failures = 0
        return self.interval

    def run(self, stop_event: threading.Event | None = None) -> None:
        """Poll until ``stop_event`` is set; never stops on upstream errors."""
        stop_event = stop_event or threading.Event()
        sleep = self._sleep or stop_event.wait
        logger.info(
            "poll_loop_started",
            extra={
                "health_url": self.fetcher.health_url,
                "stats_url": self.fetcher.stats_url,
                "interval": self.interval,
                "backoff": self.backoff.base_delay,
            },
        )
        while not stop_event.is_set():
            delay = self.run_cycle()
            sleep(delay)
        logger.info("poll_loop_stopped")

    def _failed(self, endpoint: str, exc: FetchError) -> float:
        self.consecutive_failures += 1
        delay = self.backoff.delay(self.consecutive_failures)
        if self.metrics is not None:
            self.metrics.fetch_errors.labels(endpoint, exc.kind).inc()
        logger.error(
            f"{endpoint}_fetch_failed",
            extra={
                "endpoint": endpoint,
                "error": exc,
                "failures": self.consecutive_failures,
                "retry_in": delay,
            },
        )
        return delay

    def apply_health(self, health: HealthSnapshot) -> None:
        self.sink.set_gauge("overall_health", int(health.healthy))
        self.sink.set_gauge("slack_health", int(health.slack))
        self.sink.set_gauge("database_health", int(health.database))

    def apply_stats(self, stats: StatsSnapshot) -> None:
        self.sink.set_counter_absolute("tickets", stats.total_tickets)
        self.sink.set_gauge("open_tickets", stats.total_open)
        self.sink.set_gauge("in_progress_tickets", stats.total_in_progress)
        self.sink.set_gauge("closed_tickets", stats.total_closed)
        if stats.average_hang_time_minutes is not None:
            self.sink.set_gauge(
                "average_hang_time_minutes", stats.average_hang_time_minutes
            )
        self._apply_top_users(
            "user_closed_tickets",
            stats.total_top_3_users_with_closed_tickets,
            self.sink.set_counter_absolute,
        )

        if stats.prev_day_total is not None:
            self.sink.set_counter_absolute("tickets_prev_day", stats.prev_day_total)
        if stats.prev_day_open is not None:
            self.sink.set_gauge("open_tickets_prev_day", stats.prev_day_open)
        if stats.prev_day_in_progress is not None:
            self.sink.set_gauge(
                "in_progress_tickets_prev_day", stats.prev_day_in_progress
            )
        if stats.prev_day_closed is not None:
            self.sink.set_gauge("closed_tickets_prev_day", stats.prev_day_closed)
        if stats.prev_day_average_hang_time_minutes is not None:
            self.sink.set_gauge(
                "average_hang_time_minutes_prev_day",
                stats.prev_day_average_hang_time_minutes,
            )
        prev_users = stats.prev_day_top_3_users_with_closed_tickets
        # A missing list still prunes, so earlier prev-day series do not linger.
        if prev_users is not None or self.prune_stale_series:
            self._apply_top_users(
                "user_closed_tickets_prev_day",
                prev_users or [],
                self.sink.set_gauge,
            )

    def _apply_top_users(
        self,
        name: str,
        entries: Iterable[TopUserEntry],
        setter: Callable[..., None],
    ) -> None:
        seen: set[tuple[str, ...]] = set()
        for entry in entries:
            labels = {
                "user_id": str(entry.id),
                "slack_id": entry.slack_id,
                "display_name": self.display_name(entry.slack_id),
            }
            setter(name, entry.closed_ticket_count, labels)
            seen.add((labels["user_id"], labels["slack_id"], labels["display_name"]))

        if not self.prune_stale_series:
            return
        for labelvalues in self.sink.series(name) - seen:
            self.sink.remove(name, labelvalues)
            logger.info(
                "stale_series_removed",
                extra={"metric": name, "labels": list(labelvalues)},
            )

    def display_name(self, slack_id: str) -> str:
        """Resolved display name, or the raw Slack id when it cannot be resolved."""
        if self.resolver is None:
            return slack_id
        return self.resolver.resolve(slack_id) or slack_id
