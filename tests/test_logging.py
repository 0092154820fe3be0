"""Unit tests for the logging configuration."""

import logging
import sys

import pytest
import structlog

from permit_audit.logging import LOG_LEVELS, configure_logging


def test_configure_logging(mocker):
    """Test that the logging is configured correctly."""
    mock_basic_config = mocker.patch("logging.basicConfig")
    configure_logging(level="debug")
    mock_basic_config.assert_called_with(level=logging.DEBUG, format="%(message)s", stream=sys.stderr)

    configure_logging(level="WARNING", json_output=True)
    mock_basic_config.assert_called_with(level=logging.WARNING, format="%(message)s", stream=sys.stderr)

    with pytest.raises(ValueError, match="Unsupported log level"):
        configure_logging(level="invalid")

    # Reset logging configuration
    structlog.reset_defaults()


def test_json_output_uses_json_renderer(mocker):
    mocker.patch("logging.basicConfig")
    configure = mocker.patch("structlog.configure")
    configure_logging(level="info", json_output=True)
    processors = configure.call_args.kwargs["processors"]
    assert isinstance(processors[-1], structlog.processors.JSONRenderer)


def test_log_levels_cover_cli_choices():
    assert set(LOG_LEVELS) == {"critical", "error", "warning", "info", "debug"}
