"""Prometheus metrics for the exporter.

Bot metrics are described once in METRIC_DEFINITIONS and written by name
through MetricSink. Gauges are plain prometheus_client gauges; counters are
AbsoluteCounter collectors because the bot already reports cumulative totals
and the exported value must be replaced, not incremented.

ExporterMetrics holds the exporter's own operational metrics (fetch errors,
cycle latency, name lookups).
"""

from __future__ import annotations

import re
import threading
from dataclasses import dataclass
from typing import Iterable, Mapping

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Gauge, Histogram
from prometheus_client.core import CounterMetricFamily
from prometheus_client.registry import Collector

_NAME_RE = re.compile(r"^[a-z_][a-z0-9_]*$")

GAUGE = "gauge"
COUNTER = "counter"

USER_LABELS = ("user_id", "slack_id", "display_name")


def _validate(name: str) -> str:
    if not _NAME_RE.match(name):
        raise ValueError(
            f"Invalid metric name '{name}'. Use snake_case alphanumerics/underscores."
        )
    return name


def _prefix(name: str, service: str | None) -> str:
    if service and not name.startswith(service + "_"):
        return f"{service}_{name}"
    return name


@dataclass(frozen=True)
class MetricDefinition:
    name: str
    kind: str
    documentation: str
    labelnames: tuple[str, ...] = ()


METRIC_DEFINITIONS: tuple[MetricDefinition, ...] = (
    # Health
    MetricDefinition("overall_health", GAUGE, "Whether Helper Heidi is healthy"),
    MetricDefinition("slack_health", GAUGE, "Whether Helper Heidi can reach Slack"),
    MetricDefinition(
        "database_health", GAUGE, "Whether Helper Heidi can reach its database"
    ),
    # Current totals
    MetricDefinition("tickets", COUNTER, "Total tickets ever opened"),
    MetricDefinition("open_tickets", GAUGE, "Tickets currently open"),
    MetricDefinition("in_progress_tickets", GAUGE, "Tickets currently in progress"),
    MetricDefinition("closed_tickets", GAUGE, "Tickets closed"),
    MetricDefinition(
        "average_hang_time_minutes",
        GAUGE,
        "Average time a ticket waits before it is resolved, in minutes",
    ),
    MetricDefinition(
        "user_closed_tickets",
        COUNTER,
        "Tickets closed by each of the top helpers",
        USER_LABELS,
    ),
    # Previous day
    MetricDefinition("tickets_prev_day", COUNTER, "Tickets opened the previous day"),
    MetricDefinition(
        "open_tickets_prev_day", GAUGE, "Tickets left open the previous day"
    ),
    MetricDefinition(
        "in_progress_tickets_prev_day",
        GAUGE,
        "Tickets left in progress the previous day",
    ),
    MetricDefinition("closed_tickets_prev_day", GAUGE, "Tickets closed the previous day"),
    MetricDefinition(
        "average_hang_time_minutes_prev_day",
        GAUGE,
        "Average ticket hang time the previous day, in minutes",
    ),
    MetricDefinition(
        "user_closed_tickets_prev_day",
        GAUGE,
        "Tickets closed the previous day by each of the top helpers",
        USER_LABELS,
    ),
)


class AbsoluteCounter(Collector):
    """Counter whose exported total is overwritten with an observed value."""

    def __init__(
        self,
        name: str,
        documentation: str,
        labelnames: Iterable[str] = (),
        registry: CollectorRegistry | None = REGISTRY,
    ):
        self._name = _validate(name)
        self._documentation = documentation
        self._labelnames = tuple(labelnames)
        self._values: dict[tuple[str, ...], float] = {}
        self._lock = threading.Lock()
        if registry is not None:
            registry.register(self)

    def _key(self, labelvalues: Iterable[object]) -> tuple[str, ...]:
        key = tuple(str(v) for v in labelvalues)
        if len(key) != len(self._labelnames):
            raise ValueError(
                f"{self._name} expects labels {self._labelnames}, got {key}"
            )
        return key

    def set(self, value: float, labelvalues: Iterable[object] = ()) -> None:
        if value < 0:
            raise ValueError(f"{self._name} cannot be set to a negative value")
        key = self._key(labelvalues)
        with self._lock:
            self._values[key] = float(value)

    def remove(self, labelvalues: Iterable[object]) -> None:
        key = self._key(labelvalues)
        with self._lock:
            self._values.pop(key, None)

    def get(self, labelvalues: Iterable[object] = ()) -> float | None:
        with self._lock:
            return self._values.get(self._key(labelvalues))

    def describe(self):
        return [
            CounterMetricFamily(
                self._name, self._documentation, labels=self._labelnames
            )
        ]

    def collect(self):
        family = CounterMetricFamily(
            self._name, self._documentation, labels=self._labelnames
        )
        with self._lock:
            items = list(self._values.items())
        for labelvalues, value in items:
            family.add_metric(list(labelvalues), value)
        yield family


class MetricSink:
    """Name-addressed writer over the registered bot metrics."""

    def __init__(
        self,
        prefix: str = "nephthys",
        registry: CollectorRegistry | None = REGISTRY,
        definitions: Iterable[MetricDefinition] = METRIC_DEFINITIONS,
    ):
        self.prefix = prefix
        self._registry = registry
        self._gauges: dict[str, Gauge] = {}
        self._counters: dict[str, AbsoluteCounter] = {}
        self._labelnames: dict[str, tuple[str, ...]] = {}
        self._series: dict[str, set[tuple[str, ...]]] = {}
        for definition in definitions:
            self.describe(definition)

    def describe(self, definition: MetricDefinition) -> None:
        full_name = _validate(_prefix(definition.name, self.prefix))
        if definition.kind == GAUGE:
            self._gauges[definition.name] = Gauge(
                full_name,
                definition.documentation,
                labelnames=definition.labelnames,
                registry=self._registry,
            )
        elif definition.kind == COUNTER:
            self._counters[definition.name] = AbsoluteCounter(
                full_name,
                definition.documentation,
                labelnames=definition.labelnames,
                registry=self._registry,
            )
        else:
            raise ValueError(f"Unknown metric kind '{definition.kind}'")
        self._labelnames[definition.name] = definition.labelnames
        self._series[definition.name] = set()

    def _labelvalues(
        self, name: str, labels: Mapping[str, object] | None
    ) -> tuple[str, ...]:
        labelnames = self._labelnames[name]
        labels = labels or {}
        if set(labels) != set(labelnames):
            raise ValueError(f"{name} expects labels {labelnames}, got {sorted(labels)}")
        return tuple(str(labels[label]) for label in labelnames)

    def set_gauge(
        self, name: str, value: float, labels: Mapping[str, object] | None = None
    ) -> None:
        gauge = self._gauges[name]
        labelvalues = self._labelvalues(name, labels)
        if labelvalues:
            gauge.labels(*labelvalues).set(value)
        else:
            gauge.set(value)
        self._series[name].add(labelvalues)

    def set_counter_absolute(
        self, name: str, value: float, labels: Mapping[str, object] | None = None
    ) -> None:
        labelvalues = self._labelvalues(name, labels)
        self._counters[name].set(value, labelvalues)
        self._series[name].add(labelvalues)

    def remove(self, name: str, labelvalues: tuple[str, ...]) -> None:
        if labelvalues not in self._series[name]:
            return
        if name in self._gauges:
            self._gauges[name].remove(*labelvalues)
        else:
            self._counters[name].remove(labelvalues)
        self._series[name].discard(labelvalues)

    def series(self, name: str) -> set[tuple[str, ...]]:
        """Label value tuples currently exported for ``name``."""
        return set(self._series[name])


def get_counter(
    name: str,
    documentation: str,
    service: str | None = None,
    labelnames: Iterable[str] = (),
    registry: CollectorRegistry | None = REGISTRY,
) -> Counter:
    return Counter(
        _validate(_prefix(name, service)),
        documentation,
        labelnames=tuple(labelnames),
        registry=registry,
    )


def get_histogram(
    name: str,
    documentation: str,
    service: str | None = None,
    buckets: list[float] | None = None,
    registry: CollectorRegistry | None = REGISTRY,
) -> Histogram:
    full_name = _validate(_prefix(name, service))
    if buckets is None:
        return Histogram(full_name, documentation, registry=registry)
    return Histogram(full_name, documentation, buckets=buckets, registry=registry)


def get_gauge(
    name: str,
    documentation: str,
    service: str | None = None,
    registry: CollectorRegistry | None = REGISTRY,
) -> Gauge:
    return Gauge(_validate(_prefix(name, service)), documentation, registry=registry)


class ExporterMetrics:
    def __init__(
        self,
        service: str = "support_watcher",
        registry: CollectorRegistry | None = REGISTRY,
    ):
        self.fetch_errors = get_counter(
            "fetch_errors_total",
            "Failed fetches against the bot, by endpoint and error kind",
            service,
            labelnames=("endpoint", "kind"),
            registry=registry,
        )
        self.poll_cycle = get_histogram(
            "poll_cycle_seconds",
            "Duration of a health + stats poll cycle",
            service,
            registry=registry,
        )
        self.name_lookups = get_counter(
            "name_lookups_total",
            "Slack display name lookups, by result (hit, resolved, error)",
            service,
            labelnames=("result",),
            registry=registry,
        )
        self.name_cache_entries = get_gauge(
            "name_cache_entries",
            "Display names held in the lookup cache",
            service,
            registry=registry,
        )


__all__ = [
    "AbsoluteCounter",
    "ExporterMetrics",
    "MetricDefinition",
    "MetricSink",
    "METRIC_DEFINITIONS",
    "USER_LABELS",
    "get_counter",
    "get_gauge",
    "get_histogram",
]
