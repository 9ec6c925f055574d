"""Kafka publisher for goal lifecycle events."""
from __future__ import annotations

import json
import logging
from collections.abc import Callable
from datetime import datetime, timezone
from uuid import uuid4

from kafka import KafkaProducer
from pydantic import BaseModel

from dreamsaver.core.config import Settings, get_settings
from dreamsaver.models import Goal
from dreamsaver.obs import inject_traceparent

logger = logging.getLogger(__name__)


class GoalEvent(BaseModel):
    """Serializable representation of a goal state change."""

    event_id: str
    event_type: str
    goal_id: str
    user_id: str
    product_id: str
    status: str
    saved: str
    target_amount: str
    occurred_at: datetime

    @classmethod
    def from_goal(cls, *, goal: Goal, event_type: str, occurred_at: datetime | None = None) -> "GoalEvent":
        return cls(
            event_id=uuid4().hex,
            event_type=event_type,
            goal_id=goal.id,
            user_id=goal.user_id,
            product_id=goal.product_id,
            status=goal.status.value,
            saved=str(goal.saved),
            target_amount=str(goal.target_amount),
            occurred_at=occurred_at or datetime.now(timezone.utc),
        )


class GoalEventPublisher:
    """Publishes goal events to Kafka once the owning transaction has committed."""

    def __init__(
        self,
        *,
        settings: Settings | None = None,
        producer_factory: Callable[[], KafkaProducer] | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._producer_factory = producer_factory or self._default_factory
        self._producer: KafkaProducer | None = None

    def _default_factory(self) -> KafkaProducer:
        return KafkaProducer(
            bootstrap_servers=self._settings.kafka_bootstrap_servers.split(","),
            value_serializer=lambda value: json.dumps(value).encode("utf-8"),
        )

    def _get_producer(self) -> KafkaProducer:
        if self._producer is None:
            self._producer = self._producer_factory()
        return self._producer

    def publish(self, goal: Goal, *, event_type: str) -> None:
        if not self._settings.enable_goal_events:
            return
        event = GoalEvent.from_goal(goal=goal, event_type=event_type)
        headers = [(key, value.encode("utf-8")) for key, value in inject_traceparent({}).items()]
        producer = self._get_producer()
        logger.debug("publishing goal event", extra={"goal_id": goal.id, "event_type": event_type})
        producer.send(self._settings.goal_events_topic, value=event.model_dump(mode="json"), headers=headers)
        producer.flush()


def publish_after_commit(publisher: GoalEventPublisher, goal: Goal, *, event_type: str) -> None:
    """Publish an event for committed state; broker failures are logged, not raised."""

    try:
        publisher.publish(goal, event_type=event_type)
    except Exception:
        logger.exception("failed to publish goal event", extra={"goal_id": goal.id, "event_type": event_type})


__all__ = ["GoalEvent", "GoalEventPublisher", "publish_after_commit"]
