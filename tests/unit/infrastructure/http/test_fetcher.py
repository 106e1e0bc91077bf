import pytest
import requests

from support_watcher.domain.models import HealthSnapshot, StatsSnapshot
from support_watcher.infrastructure.http.fetcher import (
    DecodeError,
    FetchError,
    StatsFetcher,
    TransportError,
)

HEALTH_URL = "http://bot/health"
STATS_URL = "http://bot/api/stats"


@pytest.fixture
def fetcher(mock_session):
    return StatsFetcher(
        health_url=HEALTH_URL, stats_url=STATS_URL, timeout=2.0, session=mock_session
    )


def test_fetch_health_decodes_payload(fetcher, mock_session, make_response, health_payload):
    mock_session.get.return_value = make_response(health_payload)

    health = fetcher.fetch_health()

    assert health == HealthSnapshot(healthy=True, slack=True, database=False)
    mock_session.get.assert_called_once_with(HEALTH_URL, timeout=2.0)


def test_fetch_stats_decodes_payload(fetcher, mock_session, make_response, stats_payload):
    mock_session.get.return_value = make_response(stats_payload)

    stats = fetcher.fetch_stats()

    assert isinstance(stats, StatsSnapshot)
    assert stats.total_tickets == 120
    assert [u.slack_id for u in stats.total_top_3_users_with_closed_tickets] == [
        "U1",
        "U2",
        "U3",
    ]
    mock_session.get.assert_called_once_with(STATS_URL, timeout=2.0)


def test_connection_error_is_transport_error(fetcher, mock_session):
    mock_session.get.side_effect = requests.ConnectionError("connection refused")

    with pytest.raises(TransportError) as exc_info:
        fetcher.fetch_health()

    assert exc_info.value.kind == "transport"
    assert exc_info.value.url == HEALTH_URL
    assert "connection refused" in exc_info.value.detail


def test_timeout_is_transport_error(fetcher, mock_session):
    mock_session.get.side_effect = requests.Timeout("read timed out")

    with pytest.raises(TransportError):
        fetcher.fetch_stats()


def test_non_2xx_status_is_transport_error(fetcher, mock_session, make_response):
    mock_session.get.return_value = make_response(
        "upstream down", status_error=requests.HTTPError("503 Server Error")
    )

    with pytest.raises(TransportError) as exc_info:
        fetcher.fetch_health()

    assert "503" in exc_info.value.detail


def test_invalid_json_is_decode_error(fetcher, mock_session, make_response):
    mock_session.get.return_value = make_response("<html>oops</html>")

    with pytest.raises(DecodeError) as exc_info:
        fetcher.fetch_health()

    assert exc_info.value.kind == "decode"


def test_missing_field_is_decode_error(fetcher, mock_session, make_response):
    mock_session.get.return_value = make_response({"healthy": True, "slack": True})

    with pytest.raises(DecodeError):
        fetcher.fetch_health()


def test_type_mismatch_is_decode_error(fetcher, mock_session, make_response, stats_payload):
    stats_payload["total_tickets"] = "lots"
    mock_session.get.return_value = make_response(stats_payload)

    with pytest.raises(DecodeError):
        fetcher.fetch_stats()


def test_negative_count_is_decode_error(fetcher, mock_session, make_response, stats_payload):
    stats_payload["total_open"] = -1
    mock_session.get.return_value = make_response(stats_payload)

    with pytest.raises(DecodeError):
        fetcher.fetch_stats()


def test_errors_share_base_class():
    assert issubclass(TransportError, FetchError)
    assert issubclass(DecodeError, FetchError)


def test_close_closes_session(fetcher, mock_session):
    fetcher.close()
    mock_session.close.assert_called_once()
