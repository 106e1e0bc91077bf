import logging
from unittest.mock import patch

from support_watcher.core.logger import get_logger


class TestLogger:
    """Test logger functionality."""

    def test_get_logger_returns_named_logger(self):
        logger = get_logger("support_watcher.test")

        assert isinstance(logger, logging.Logger)
        assert logger.name == "support_watcher.test"

    def test_same_name_returns_same_instance(self):
        assert get_logger("same_name") is get_logger("same_name")

    def test_applies_minimal_fallback_config(self):
        with patch("logging.basicConfig") as mock_basic_config:
            get_logger("fresh")

        mock_basic_config.assert_called_once()
        assert mock_basic_config.call_args.kwargs["level"] == logging.INFO
