"""
Tests for the fire-and-forget notification dispatcher.
"""

import json

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from progression.notifications.dispatcher import NotificationType, quiz_notification_type


@pytest.mark.parametrize("score,kind", [
    (95, NotificationType.HIGH_QUIZ_SCORE),
    (90, NotificationType.HIGH_QUIZ_SCORE),
    (70, NotificationType.QUIZ_COMPLETED),
    (50, NotificationType.QUIZ_COMPLETED),
    (49, NotificationType.LOW_QUIZ_SCORE),
])
def test_quiz_notification_type(score, kind):
    assert quiz_notification_type(score, low_threshold=50) is kind


class TestDispatcher:
    """Publishing on the alert and notification channels."""

    @pytest.mark.asyncio
    async def test_alert_payload(self, dispatcher, redis_client):
        # Act
        dispatcher.low_score_alert("learner-1", "Fractions", 30)
        await dispatcher.drain()

        # Assert
        channel, message = redis_client.publish.call_args.args
        payload = json.loads(message)
        assert channel == "test:alerts"
        assert payload["type"] == "LOW_QUIZ_SCORE"
        assert payload["learnerId"] == "learner-1"
        assert payload["score"] == 30
        assert "createdAt" in payload

    @pytest.mark.asyncio
    async def test_badge_notification(self, dispatcher, redis_client):
        dispatcher.badge_earned("learner-1", {"code": "first_quiz", "name": "Quiz Beginner"})
        await dispatcher.drain()

        channel, message = redis_client.publish.call_args.args
        assert channel == "test:notifications"
        assert json.loads(message)["badge"]["code"] == "first_quiz"

    @pytest.mark.asyncio
    async def test_failures_are_logged_not_raised(self, dispatcher, redis_client):
        # Arrange
        redis_client.publish.side_effect = RedisConnectionError("refused")

        # Act
        dispatcher.quiz_completed("learner-1", "quiz-1", "Fractions", 80, True, 100)
        await dispatcher.drain()

        # Assert
        assert redis_client.publish.await_count == 1
        assert dispatcher.pending == 0

    def test_without_a_running_loop_the_fact_is_dropped(self, dispatcher, redis_client):
        dispatcher.notify({"learnerId": "learner-1", "type": "QUIZ_COMPLETED"})

        assert dispatcher.pending == 0
        redis_client.publish.assert_not_called()
