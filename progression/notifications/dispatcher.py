"""
Notification Dispatcher

Publishes facts for external collaborators on Redis pub/sub:
1. Alerts (e.g. a low quiz score) on the alert channel
2. Learner notifications (quiz completed, badge earned) on the notification channel

Publishing is fire-and-forget. Delivery failures are logged and never
reach the request that triggered them.
"""

import asyncio
import enum
from typing import Any, Dict, Optional, Set

from redis.asyncio import Redis
from redis.exceptions import RedisError

from progression.common.logger import app_logger
from progression.common.serialization import to_json
from progression.common.utils import utcnow

# Set up module logger
logger = app_logger.getChild("notifications.dispatcher")

HIGH_SCORE_THRESHOLD = 90


class NotificationType(enum.Enum):
    """Kinds of facts published by the engine."""
    QUIZ_COMPLETED = "QUIZ_COMPLETED"
    HIGH_QUIZ_SCORE = "HIGH_QUIZ_SCORE"
    LOW_QUIZ_SCORE = "LOW_QUIZ_SCORE"
    BADGE_EARNED = "BADGE_EARNED"


def quiz_notification_type(score: int, low_threshold: int = 50) -> NotificationType:
    """Pick the quiz-completion notification kind for a percentage."""
    if score >= HIGH_SCORE_THRESHOLD:
        return NotificationType.HIGH_QUIZ_SCORE
    if score < low_threshold:
        return NotificationType.LOW_QUIZ_SCORE
    return NotificationType.QUIZ_COMPLETED


class NotificationDispatcher:
    """
    Fire-and-forget publisher for alerts and notifications.

    Each publish runs as its own task; ``drain`` waits for the tasks still
    in flight, which is used on shutdown and in tests.
    """

    def __init__(
        self,
        redis_client: Redis,
        alert_channel: str = "progression:alerts",
        notification_channel: str = "progression:notifications",
        low_score_threshold: int = 50
    ):
        """
        Initialize the dispatcher.

        Args:
            redis_client: Async Redis client used to publish
            alert_channel: Channel for alert facts
            notification_channel: Channel for learner notifications
            low_score_threshold: Percentage below which a quiz is a low score
        """
        self.redis = redis_client
        self.alert_channel = alert_channel
        self.notification_channel = notification_channel
        self.low_score_threshold = low_score_threshold

        # Track pending tasks
        self._pending_tasks: Set[asyncio.Task] = set()

    def quiz_completed(
        self,
        learner_id: str,
        quiz_id: str,
        lesson_title: str,
        score: int,
        passed: bool,
        xp_earned: int
    ) -> None:
        """Publish the quiz-completion notification."""
        kind = quiz_notification_type(score, self.low_score_threshold)
        self.notify({
            "learnerId": learner_id,
            "type": kind.value,
            "quizId": quiz_id,
            "lessonTitle": lesson_title,
            "score": score,
            "passed": passed,
            "xpEarned": xp_earned,
        })

    def badge_earned(self, learner_id: str, badge: Dict[str, Any]) -> None:
        """Publish a notification for one newly awarded badge."""
        self.notify({
            "learnerId": learner_id,
            "type": NotificationType.BADGE_EARNED.value,
            "badge": badge,
        })

    def low_score_alert(self, learner_id: str, lesson_title: str, score: int) -> None:
        """Publish a low-score alert fact to the alerting sink."""
        self.alert({
            "learnerId": learner_id,
            "type": NotificationType.LOW_QUIZ_SCORE.value,
            "lessonTitle": lesson_title,
            "score": score,
        })

    def notify(self, payload: Dict[str, Any]) -> None:
        self._schedule(self.notification_channel, payload)

    def alert(self, payload: Dict[str, Any]) -> None:
        self._schedule(self.alert_channel, payload)

    def _schedule(self, channel: str, payload: Dict[str, Any]) -> None:
        payload = {**payload, "createdAt": utcnow()}
        try:
            task = asyncio.get_running_loop().create_task(self._publish(channel, payload))
        except RuntimeError:
            logger.warning(f"No running event loop; dropped {payload.get('type')} for {payload.get('learnerId')}")
            return
        self._track_task(task)

    async def _publish(self, channel: str, payload: Dict[str, Any]) -> None:
        """
        Publish one payload, logging instead of raising on failure.

        Args:
            channel: Pub/sub channel
            payload: JSON-serializable fact
        """
        try:
            await self.redis.publish(channel, to_json(payload))
            logger.debug(f"Published {payload.get('type')} on {channel}")
        except (RedisError, OSError) as e:
            logger.warning(
                f"Failed to publish {payload.get('type')} for learner {payload.get('learnerId')}: {e}"
            )

    def _track_task(self, task: asyncio.Task) -> None:
        """
        Track an asyncio task to ensure completion and cleanup.

        Args:
            task: Task to track
        """
        self._pending_tasks.add(task)
        task.add_done_callback(self._remove_task)

    def _remove_task(self, task: asyncio.Task) -> None:
        """
        Remove a task from the tracking set and log its exception, if any.

        Args:
            task: Task that has completed
        """
        self._pending_tasks.discard(task)

        if not task.cancelled() and task.exception():
            logger.error(f"Notification task raised exception: {task.exception()}")

    @property
    def pending(self) -> int:
        return len(self._pending_tasks)

    async def drain(self, timeout: Optional[float] = 5.0) -> None:
        """Wait for in-flight publishes to finish."""
        if not self._pending_tasks:
            return
        done, pending = await asyncio.wait(set(self._pending_tasks), timeout=timeout)
        for task in pending:
            task.cancel()
        if pending:
            logger.warning(f"Cancelled {len(pending)} notification task(s) still pending")
