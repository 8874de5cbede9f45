"""
Unit Tests for the domain event bus
"""
from drd_portal.core.events import (
    EventBus,
    DomainEvent,
    TransitionOccurred,
    SuggestionResolved,
    build_event_bus,
)


def _transition(**kwargs) -> TransitionOccurred:
    defaults = dict(
        submission_id="s1",
        actor_id="u1",
        kind="ipr",
        workflow_event="submit",
        from_status="draft",
        to_status="submitted",
    )
    defaults.update(kwargs)
    return TransitionOccurred(**defaults)


class TestEventBus:

    async def test_subscribers_receive_matching_events(self):
        bus = EventBus()
        seen = []
        bus.subscribe(TransitionOccurred, seen.append)

        await bus.publish(_transition())
        await bus.publish(SuggestionResolved(submission_id="s1", actor_id="u1", field_name="title"))

        assert len(seen) == 1
        assert seen[0].to_status == "submitted"

    async def test_base_class_subscription_sees_everything(self):
        bus = EventBus()
        seen = []
        bus.subscribe(DomainEvent, seen.append)

        await bus.publish_all([
            _transition(),
            SuggestionResolved(submission_id="s1", actor_id="u1", field_name="title"),
        ])

        assert [e.name for e in seen] == ["TransitionOccurred", "SuggestionResolved"]

    async def test_async_handlers_are_awaited(self):
        bus = EventBus()
        seen = []

        async def handler(event):
            seen.append(event.submission_id)

        bus.subscribe(TransitionOccurred, handler)
        await bus.publish(_transition(submission_id="s9"))

        assert seen == ["s9"]

    async def test_failing_handler_does_not_stop_others(self):
        bus = EventBus()
        seen = []

        def broken(event):
            raise RuntimeError("mail server down")

        bus.subscribe(TransitionOccurred, broken)
        bus.subscribe(TransitionOccurred, seen.append)

        await bus.publish(_transition())

        assert len(seen) == 1

    async def test_unsubscribe(self):
        bus = EventBus()
        seen = []
        bus.subscribe(TransitionOccurred, seen.append)
        bus.unsubscribe(TransitionOccurred, seen.append)

        await bus.publish(_transition())
        assert seen == []

    async def test_history_kept_when_enabled(self):
        bus = build_event_bus()
        bus.keep_history = True

        await bus.publish(_transition())
        assert len(bus.published) == 1

    def test_to_dict(self):
        data = _transition(comment="looks good").to_dict()

        assert data["event"] == "TransitionOccurred"
        assert data["workflow_event"] == "submit"
        assert data["comment"] == "looks good"
        assert isinstance(data["occurred_at"], str)
