"""
Tests for log formatting.
"""

import json
import logging
import re

from bitbucket_backup.logging_config import (
    SUCCESS,
    HumanFormatter,
    JSONFormatter,
    setup_logging,
)


def _record(level, msg="Cloning repository: alpha"):
    return logging.LogRecord("bitbucket_backup", level, __file__, 1, msg, None, None)


class TestHumanFormatter:
    def test_timestamp_and_tag(self):
        line = HumanFormatter(colorize=False).format(_record(logging.INFO))

        assert re.fullmatch(
            r"\[\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}\] \[INFO\] Cloning repository: alpha", line
        )

    def test_warning_is_tagged_warn(self):
        assert "[WARN]" in HumanFormatter(colorize=False).format(_record(logging.WARNING))

    def test_success_level(self):
        assert "[SUCCESS]" in HumanFormatter(colorize=False).format(_record(SUCCESS))

    def test_colour_codes(self):
        line = HumanFormatter(colorize=True).format(_record(logging.ERROR))

        assert "\033[31m[ERROR]\033[0m" in line


def test_json_formatter():
    entry = json.loads(JSONFormatter().format(_record(logging.WARNING)))

    assert entry["level"] == "WARN"
    assert entry["logger"] == "bitbucket_backup"
    assert entry["message"] == "Cloning repository: alpha"


def test_setup_logging_installs_single_handler():
    setup_logging(level="DEBUG", format_type="json")
    setup_logging(level="DEBUG", format_type="json")

    root = logging.getLogger()
    assert len(root.handlers) == 1
    assert isinstance(root.handlers[0].formatter, JSONFormatter)
    assert root.level == logging.DEBUG
