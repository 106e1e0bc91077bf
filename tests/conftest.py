import json
from unittest.mock import MagicMock

import pytest
from prometheus_client import CollectorRegistry

from support_watcher.metrics import ExporterMetrics, MetricSink


def _make_response(body, status_error: Exception | None = None):
    """requests.Response stand-in carrying ``body`` (dict -> JSON, str/bytes raw)."""
    response = MagicMock()
    if isinstance(body, (dict, list)):
        body = json.dumps(body)
    if isinstance(body, str):
        body = body.encode()
    response.content = body
    if status_error is not None:
        response.raise_for_status.side_effect = status_error
    else:
        response.raise_for_status.return_value = None
    return response


@pytest.fixture
def make_response():
    return _make_response


@pytest.fixture
def registry():
    """Isolated registry so tests never collide on metric names."""
    return CollectorRegistry()


@pytest.fixture
def sink(registry):
    return MetricSink(prefix="nephthys", registry=registry)


@pytest.fixture
def exporter_metrics(registry):
    return ExporterMetrics(registry=registry)


@pytest.fixture
def mock_session():
    return MagicMock()


@pytest.fixture
def health_payload():
    return {"healthy": True, "slack": True, "database": False}


@pytest.fixture
def stats_payload():
    return {
        "total_tickets": 120,
        "total_open": 7,
        "total_in_progress": 3,
        "total_closed": 110,
        "average_hang_time_minutes": 42.5,
        "total_top_3_users_with_closed_tickets": [
            {"id": 1, "slack_id": "U1", "closed_ticket_count": 5},
            {"id": 2, "slack_id": "U2", "closed_ticket_count": 3},
            {"id": 3, "slack_id": "U3", "closed_ticket_count": 1},
        ],
        "prev_day_total": 14,
        "prev_day_open": 2,
        "prev_day_in_progress": 1,
        "prev_day_closed": 11,
        "prev_day_average_hang_time_minutes": 18.25,
        "prev_day_top_3_users_with_closed_tickets": [
            {"id": 2, "slack_id": "U2", "closed_ticket_count": 4},
        ],
    }
