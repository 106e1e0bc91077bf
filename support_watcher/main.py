from __future__ import annotations

import argparse
import signal
import sys
import threading

from prometheus_client import REGISTRY, start_http_server

from support_watcher.core.config import settings
from support_watcher.core.logger import get_logger
from support_watcher.core.logging_config import configure_logging
from support_watcher.infrastructure.http.fetcher import StatsFetcher
from support_watcher.infrastructure.slack.client import SlackNameResolver
from support_watcher.metrics import ExporterMetrics, MetricSink
from support_watcher.services.poller import PollLoop

logger = get_logger("app")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="support-watcher",
        description="Prometheus metric exporter for the Helper Heidi bot",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=settings.metrics_port,
        help="port to bind the metrics endpoint to (default: %(default)s)",
    )
    return parser.parse_args(argv)


def build_poll_loop(registry=REGISTRY) -> PollLoop:
    metrics = ExporterMetrics(service=settings.otel_service_name, registry=registry)
    sink = MetricSink(prefix=settings.metrics_prefix, registry=registry)
    resolver = None
    if settings.slack_bot_token:
        resolver = SlackNameResolver(settings.slack_bot_token, metrics=metrics)
    else:
        logger.warning(
            "slack_token_missing", extra={"fallback": "display_name=slack_id"}
        )
    return PollLoop(StatsFetcher(), sink, resolver=resolver, metrics=metrics)


def _install_signal_handlers(stop_event: threading.Event) -> None:
    # First signal drains (stops after the current step), second exits at once.
    state = {"signalled": False}

    def _on_signal(signum, frame):
        if not state["signalled"]:
            logger.info("signal_received", extra={"signal": signum, "action": "drain"})
            stop_event.set()
            state["signalled"] = True
        else:
            logger.warning(
                "second_signal_exit", extra={"signal": signum, "action": "exit"}
            )
            sys.exit(1)

    for sig in (signal.SIGINT, signal.SIGTERM):
        signal.signal(sig, _on_signal)


def run(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    configure_logging(
        service=settings.otel_service_name,
        level=settings.app_log_level,
        environment=settings.app_environment,
        redaction_patterns=settings.app_log_redaction_patterns,
    )
    logger.info("support_watcher_starting")

    poll_loop = build_poll_loop()

    try:
        start_http_server(args.port, addr="0.0.0.0")
    except OSError as exc:
        logger.error("metrics_bind_failed", extra={"port": args.port, "error": str(exc)})
        return 1
    logger.info(
        "metrics_listening",
        extra={"port": args.port, "url": f"http://localhost:{args.port}/metrics"},
    )

    stop_event = threading.Event()
    _install_signal_handlers(stop_event)
    try:
        poll_loop.run(stop_event)
    finally:
        poll_loop.fetcher.close()
        if poll_loop.resolver is not None:
            poll_loop.resolver.close()
        logger.info("support_watcher_stopping")
    return 0


def main() -> None:
    sys.exit(run())


if __name__ == "__main__":
    main()
