"""
Tests for contextual and structured logging.
"""

import json
import logging

import pytest

from progression.common.logger import JsonFormatter, app_logger, log_execution_time, with_context


def test_context_is_appended_and_attached(caplog):
    log = with_context(app_logger.getChild("tests"), learner_id="learner-1", quiz_id="quiz-1")

    with caplog.at_level(logging.INFO, logger="progression"):
        log.info("Attempt scored")

    record = caplog.records[-1]
    assert record.getMessage() == "Attempt scored [learner_id=learner-1 quiz_id=quiz-1]"
    assert record.context == {"learner_id": "learner-1", "quiz_id": "quiz-1"}


def test_json_formatter_merges_context():
    record = logging.LogRecord("progression.tests", logging.WARNING, __file__, 1, "Low score", None, None)
    record.context = {"learner_id": "learner-1"}

    payload = json.loads(JsonFormatter().format(record))

    assert payload["message"] == "Low score"
    assert payload["level"] == "WARNING"
    assert payload["learner_id"] == "learner-1"


@pytest.mark.asyncio
async def test_log_execution_time_reraises(caplog):
    @log_execution_time(app_logger)
    async def failing():
        raise RuntimeError("boom")

    with caplog.at_level(logging.ERROR, logger="progression"):
        with pytest.raises(RuntimeError):
            await failing()

    assert "failing failed after" in caplog.records[-1].getMessage()
