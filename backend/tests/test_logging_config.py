"""
test_logging_config.py — JSON log line shape.

Tests cover:
  - Version / request context carried from ``extra`` into the JSON line
  - Absent context fields are omitted
"""

import json
import logging

from boq_estimator.services.logging_config import JSONFormatter


def _record(**extra):
    record = logging.LogRecord("boq-versions", logging.INFO, __file__, 10, "Version submitted", None, None)
    for k, v in extra.items():
        setattr(record, k, v)
    return record


class TestJSONFormatter:

    def test_context_fields_included(self):
        line = json.loads(JSONFormatter().format(_record(version_id="v-1", duration_ms=4.2)))
        assert line["message"] == "Version submitted"
        assert line["logger"] == "boq-versions"
        assert line["version_id"] == "v-1"
        assert line["duration_ms"] == 4.2

    def test_missing_context_omitted(self):
        line = json.loads(JSONFormatter().format(_record()))
        assert "version_id" not in line
        assert "project_id" not in line
        assert line["level"] == "INFO"
