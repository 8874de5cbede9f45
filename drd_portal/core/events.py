"""
Domain event bus

Transitions and suggestion activity are published here after their unit of
work commits. Audit loggers and notification dispatchers subscribe; the
engine itself never delivers email or writes audit storage.
"""

from typing import Any, Awaitable, Callable, Dict, List, Optional, Type, Union
from dataclasses import dataclass, field, asdict
from datetime import datetime
import inspect

from drd_portal.core.logging_config import logger


@dataclass(frozen=True)
class DomainEvent:
    submission_id: str
    actor_id: str
    occurred_at: datetime = field(default_factory=datetime.utcnow)

    @property
    def name(self) -> str:
        return type(self).__name__

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["event"] = self.name
        data["occurred_at"] = self.occurred_at.isoformat()
        return data


@dataclass(frozen=True)
class TransitionOccurred(DomainEvent):
    kind: str = ""
    workflow_event: str = ""
    from_status: Optional[str] = None
    to_status: str = ""
    comment: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SuggestionProposed(DomainEvent):
    suggestion_id: str = ""
    field_name: str = ""
    superseded_id: Optional[str] = None


@dataclass(frozen=True)
class SuggestionResolved(DomainEvent):
    suggestion_id: str = ""
    field_name: str = ""
    status: str = ""
    applicant_response: Optional[str] = None


Handler = Callable[[DomainEvent], Union[None, Awaitable[None]]]


class EventBus:
    """
    In-process publisher.

    Subscribers run after commit. A failing subscriber is logged and does not
    undo the committed change or stop the remaining subscribers.
    """

    def __init__(self):
        self._handlers: Dict[Type[DomainEvent], List[Handler]] = {}
        self._history: List[DomainEvent] = []
        self.keep_history = False

    def subscribe(self, event_type: Type[DomainEvent], handler: Handler) -> None:
        self._handlers.setdefault(event_type, []).append(handler)

    def unsubscribe(self, event_type: Type[DomainEvent], handler: Handler) -> None:
        handlers = self._handlers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)

    async def publish(self, event: DomainEvent) -> None:
        if self.keep_history:
            self._history.append(event)

        for event_type, handlers in list(self._handlers.items()):
            if not isinstance(event, event_type):
                continue
            for handler in list(handlers):
                try:
                    result = handler(event)
                    if inspect.isawaitable(result):
                        await result
                except Exception as e:
                    logger.log_error_with_context(
                        e,
                        context=f"event handler for {event.name}",
                        submission_id=event.submission_id,
                    )

    async def publish_all(self, events: List[DomainEvent]) -> None:
        for event in events:
            await self.publish(event)

    @property
    def published(self) -> List[DomainEvent]:
        return list(self._history)


def audit_log_handler(event: DomainEvent) -> None:
    """Default subscriber: write every domain event to the application log"""
    if isinstance(event, TransitionOccurred):
        logger.log_transition(
            event.submission_id,
            event.workflow_event,
            event.from_status,
            event.to_status,
            event.actor_id,
            submission_kind=event.kind,
        )
    elif isinstance(event, SuggestionResolved):
        logger.log_suggestion_event(
            event.submission_id, event.status, event.field_name, event.actor_id,
            suggestion_id=event.suggestion_id,
        )
    elif isinstance(event, SuggestionProposed):
        logger.log_suggestion_event(
            event.submission_id, "proposed", event.field_name, event.actor_id,
            suggestion_id=event.suggestion_id,
        )


def build_event_bus(with_audit_log: bool = True) -> EventBus:
    bus = EventBus()
    if with_audit_log:
        bus.subscribe(DomainEvent, audit_log_handler)
    return bus


event_bus: EventBus = build_event_bus()
