"""
Unit tests for the notification queue.

Tests capacity eviction, auto-dismiss timers, persistence defaults,
actions and in-place progress updates.
"""

import asyncio
from unittest.mock import MagicMock

import pytest
from pydantic import ValidationError

from legajos.services.notifications.queue import (
    ActionVariant,
    NotificationConfig,
    NotificationQueue,
    NotificationType,
)


@pytest.fixture
def queue():
    return NotificationQueue()


class TestNotificationQueue:
    """Test adding and removing notifications."""

    @pytest.mark.asyncio
    async def test_add_each_type(self, queue):
        queue.success("Saved", "ok")
        queue.error("Failed", "boom")
        queue.warning("Careful", "hmm")
        queue.info("FYI", "note")
        queue.loading("Loading", "wait")

        types = [n.type for n in queue.get_notifications()]
        assert types == [
            NotificationType.SUCCESS,
            NotificationType.ERROR,
            NotificationType.WARNING,
            NotificationType.INFO,
            NotificationType.LOADING,
        ]

    @pytest.mark.asyncio
    async def test_persistence_defaults(self, queue):
        queue.success("a", "a")
        queue.error("b", "b")
        queue.loading("c", "c")

        persistent = [n.persistent for n in queue.get_notifications()]
        assert persistent == [False, True, True]

    @pytest.mark.asyncio
    async def test_ids_are_unique(self, queue):
        ids = {queue.info("same", "same") for _ in range(5)}

        assert len(ids) == 5

    @pytest.mark.asyncio
    async def test_capacity_evicts_oldest(self):
        queue = NotificationQueue(NotificationConfig(max_notifications=2))
        queue.info("first", "1")
        queue.info("second", "2")
        queue.info("third", "3")

        titles = [n.title for n in queue.get_notifications()]
        assert titles == ["second", "third"]

    @pytest.mark.asyncio
    async def test_remove(self, queue):
        notification_id = queue.error("Failed", "boom")

        assert queue.remove(notification_id) is True
        assert queue.remove(notification_id) is False
        assert queue.remove("unknown") is False
        assert queue.get_notifications() == []

    @pytest.mark.asyncio
    async def test_clear(self, queue, listener_factory):
        queue.info("a", "a")
        queue.error("b", "b")
        listener = listener_factory()
        queue.subscribe(listener)

        queue.clear()

        assert queue.get_notifications() == []
        assert listener.received == [[]]
        assert queue._timers == {}

    @pytest.mark.asyncio
    async def test_subscribers_receive_full_list(self, queue, listener_factory):
        listener = listener_factory()
        unsubscribe = queue.subscribe(listener)

        first = queue.info("a", "a")
        queue.info("b", "b")
        queue.remove(first)
        unsubscribe()
        queue.info("c", "c")

        assert [len(snapshot) for snapshot in listener.received] == [1, 2, 1]
        assert listener.received[-1][0].title == "b"

    @pytest.mark.asyncio
    async def test_deduplicate(self):
        queue = NotificationQueue(NotificationConfig(deduplicate=True))

        first = queue.warning("Retrying", "attempt 1")
        second = queue.warning("Retrying", "attempt 1")
        third = queue.warning("Retrying", "attempt 2")

        assert first == second
        assert third != first
        assert len(queue.get_notifications()) == 2


class TestAutoDismiss:
    """Test duration-based removal."""

    @pytest.mark.asyncio
    async def test_non_persistent_auto_dismissed(self, queue):
        queue.success("Saved", "ok", duration=0.01)

        await asyncio.sleep(0.05)

        assert queue.get_notifications() == []

    @pytest.mark.asyncio
    async def test_persistent_never_dismissed(self, queue):
        queue.error("Failed", "boom", duration=0.01)
        queue.info("Pinned", "stays", duration=0.01, persistent=True)

        await asyncio.sleep(0.05)

        assert len(queue.get_notifications()) == 2

    @pytest.mark.asyncio
    async def test_zero_duration_never_dismissed(self, queue):
        queue.info("Sticky", "zero", duration=0)

        await asyncio.sleep(0.02)

        assert len(queue.get_notifications()) == 1

    @pytest.mark.asyncio
    async def test_default_duration_from_config(self):
        queue = NotificationQueue(NotificationConfig(default_duration_seconds=0.01))
        queue.warning("Careful", "hmm")

        await asyncio.sleep(0.05)

        assert queue.get_notifications() == []

    @pytest.mark.asyncio
    async def test_manual_remove_cancels_timer(self, queue):
        notification_id = queue.success("Saved", "ok", duration=10)

        assert notification_id in queue._timers
        queue.remove(notification_id)

        assert notification_id not in queue._timers

    @pytest.mark.asyncio
    async def test_evicted_notification_timer_cancelled(self):
        queue = NotificationQueue(NotificationConfig(max_notifications=1))
        first = queue.info("first", "1", duration=10)
        queue.info("second", "2", duration=10)

        assert first not in queue._timers
        assert len(queue._timers) == 1


class TestCompositions:
    """Test retry errors, action successes and progress notifications."""

    @pytest.mark.asyncio
    async def test_show_retry_error(self, queue):
        on_retry = MagicMock()
        queue.info("other", "other")

        notification_id = queue.show_retry_error("Failed", "boom", on_retry)
        notification = queue.get_notifications()[-1]

        assert notification.id == notification_id
        assert notification.type == NotificationType.ERROR
        assert notification.persistent is True
        assert [a.label for a in notification.actions] == ["Retry", "Cancel"]
        assert notification.actions[0].variant == ActionVariant.PRIMARY
        assert notification.actions[1].variant == ActionVariant.SECONDARY

        notification.actions[0].action()
        on_retry.assert_called_once()

        notification.actions[1].action()
        assert queue.get_notifications() == []

    @pytest.mark.asyncio
    async def test_show_success_with_action(self, queue):
        on_action = MagicMock()

        queue.show_success_with_action("Exported", "done", "Open", on_action)
        notification = queue.get_notifications()[0]

        assert notification.type == NotificationType.SUCCESS
        assert notification.actions[0].label == "Open"
        notification.actions[0].action()
        on_action.assert_called_once()

    @pytest.mark.asyncio
    async def test_progress_updates_in_place(self, queue):
        notification_id = queue.show_progress("Loading", "Fetching", 0)
        notification = queue.get_notifications()[0]

        assert notification.type == NotificationType.LOADING
        assert notification.persistent is True
        assert notification.message == "Fetching (0%)"

        assert queue.update_progress(notification_id, 50) is True
        assert notification.message == "Fetching (50%)"

        assert queue.update_progress(notification_id, 75, "Almost") is True
        assert notification.message == "Almost (75%)"
        assert len(queue.get_notifications()) == 1

    @pytest.mark.asyncio
    async def test_progress_keeps_parenthesized_message(self, queue):
        notification_id = queue.show_progress("Loading", "Legajo 42 (ACME) data", 0)

        queue.update_progress(notification_id, 25)
        queue.update_progress(notification_id, 50)

        notification = queue.get_notifications()[0]
        assert notification.message == "Legajo 42 (ACME) data (50%)"
        assert notification.base_message == "Legajo 42 (ACME) data"

    @pytest.mark.asyncio
    async def test_update_progress_only_for_loading(self, queue):
        info_id = queue.info("Note", "text")

        assert queue.update_progress(info_id, 50) is False
        assert queue.update_progress("unknown", 50) is False
        assert queue.get_notifications()[0].message == "text"


class TestNotificationConfig:
    """Test config access and validation."""

    def test_update_config(self, queue):
        queue.update_config(max_notifications=3)

        assert queue.get_config().max_notifications == 3
        with pytest.raises(ValidationError):
            queue.update_config(max_notifications=0)

    def test_non_persistent_outside_loop_fails(self, queue):
        with pytest.raises(RuntimeError):
            queue.success("Saved", "ok")
        assert queue.get_notifications() == []

    def test_persistent_outside_loop_allowed(self, queue):
        queue.error("Failed", "boom")

        assert len(queue.get_notifications()) == 1
