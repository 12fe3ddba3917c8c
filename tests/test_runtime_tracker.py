"""test suite for RuntimeTracker play-time sessions."""
import asyncio
import pytest
import sys
from pathlib import Path
from unittest.mock import AsyncMock

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from modprofile.domain.errors import NotFoundError
from modprofile.domain.models import GameState
from modprofile.events import GAME_STATE_CHANGED, EventHub
from modprofile.profiles.manager import ProfileManager
from modprofile.profiles.repository import ProfileRepository
from modprofile.runtime.tracker import RuntimeTracker


class ManualClock:
    def __init__(self, now=1_000_000):
        self.now = now

    def advance(self, ms):
        self.now += ms

    def __call__(self):
        return self.now


class TestRuntimeTracker:
    @pytest.fixture
    def clock(self):
        return ManualClock()

    @pytest.fixture
    def hub(self):
        return EventHub()

    @pytest.fixture
    def manager(self):
        manager = AsyncMock(spec=ProfileManager)
        return manager

    @pytest.fixture
    def tracker(self, manager, hub, clock):
        return RuntimeTracker(manager, hub, clock=clock, tick_interval=3600)

    def run(self, tracker, scenario):
        async def wrapper():
            try:
                await scenario()
            finally:
                tracker.close()

        asyncio.run(wrapper())

    def test_single_session_adds_duration(self, tracker, manager, hub, clock):
        async def scenario():
            tracker.start()
            await hub.publish(GAME_STATE_CHANGED, {"running": True, "profileId": "p1"})
            assert tracker.is_profile_running("p1")
            clock.advance(5000)
            await hub.publish(GAME_STATE_CHANGED, {"running": False})

        self.run(tracker, scenario)

        manager.add_play_time.assert_awaited_once_with("p1", 5000)
        assert not tracker.running
        assert tracker.session_start is None

    def test_typed_payload_is_accepted(self, tracker, manager, hub, clock):
        async def scenario():
            tracker.start()
            await hub.publish(GAME_STATE_CHANGED, GameState(running=True, profile_id="p1"))
            clock.advance(1000)
            await hub.publish(GAME_STATE_CHANGED, GameState(running=False))

        self.run(tracker, scenario)

        manager.add_play_time.assert_awaited_once_with("p1", 1000)

    def test_zero_length_session_adds_nothing(self, tracker, manager):
        async def scenario():
            await tracker.handle_state(GameState(running=True, profile_id="p1"))
            await tracker.handle_state(GameState(running=False))

        self.run(tracker, scenario)

        manager.add_play_time.assert_not_awaited()

    def test_repeated_running_signal_keeps_session(self, tracker, manager, clock):
        async def scenario():
            await tracker.handle_state(GameState(running=True, profile_id="p1"))
            clock.advance(2000)
            await tracker.handle_state(GameState(running=True))
            clock.advance(3000)
            await tracker.handle_state(GameState(running=False))

        self.run(tracker, scenario)

        manager.add_play_time.assert_awaited_once_with("p1", 5000)

    def test_concurrent_profiles_have_independent_sessions(self, tracker, manager, clock):
        async def scenario():
            await tracker.handle_state(GameState(running=True, profile_instance_counts={"p1": 1}))
            clock.advance(1000)
            await tracker.handle_state(
                GameState(running=True, running_count=3, profile_instance_counts={"p1": 1, "p2": 2})
            )
            assert tracker.get_profile_running_instance_count("p2") == 2
            assert tracker.running_count == 3
            clock.advance(4000)
            await tracker.handle_state(GameState(running=True, profile_instance_counts={"p2": 2}))
            clock.advance(2000)
            await tracker.handle_state(GameState(running=False))

        self.run(tracker, scenario)

        assert manager.add_play_time.await_args_list[0].args == ("p1", 5000)
        assert manager.add_play_time.await_args_list[1].args == ("p2", 6000)
        assert manager.add_play_time.await_count == 2

    def test_mark_launched_opens_and_none_closes(self, tracker, manager, clock):
        async def scenario():
            await tracker.mark_launched("p1")
            assert tracker.running_profile_id == "p1"
            clock.advance(750)
            assert tracker.get_session_duration() == 0  # display clock not ticked yet
            await tracker.mark_launched(None)

        self.run(tracker, scenario)

        manager.add_play_time.assert_awaited_once_with("p1", 750)

    def test_session_duration_uses_current_time(self, tracker, clock):
        async def scenario():
            await tracker.handle_state(GameState(running=True, profile_id="p1"))
            clock.advance(1500)
            tracker.current_time = clock()
            assert tracker.get_session_duration() == 1500
            assert tracker.get_session_duration("p1") == 1500
            assert tracker.get_session_duration("p2") == 0

        self.run(tracker, scenario)

    def test_vanished_profile_is_logged_not_raised(self, tracker, manager, clock):
        manager.add_play_time.side_effect = NotFoundError("profile", "p1")

        async def scenario():
            await tracker.handle_state(GameState(running=True, profile_id="p1"))
            clock.advance(100)
            await tracker.handle_state(GameState(running=False))

        self.run(tracker, scenario)

        assert not tracker.running

    def test_failed_write_still_ends_session(self, tracker, manager, hub, clock):
        async def add_play_time(profile_id, duration):
            if profile_id == "p1":
                raise OSError("disk full")

        manager.add_play_time.side_effect = add_play_time

        async def scenario():
            tracker.start()
            await hub.publish(GAME_STATE_CHANGED, {"running": True, "profile_instance_counts": {"p1": 1, "p2": 1}})
            clock.advance(4000)
            await hub.publish(GAME_STATE_CHANGED, {"running": False})

            assert not tracker.running
            assert tracker.session_start is None
            assert tracker._timer is None
            assert tracker.get_profile_running_instance_count("p1") == 0
            assert tracker.running_profile_id is None

        self.run(tracker, scenario)

        assert manager.add_play_time.await_count == 2
        manager.add_play_time.assert_any_await("p2", 4000)

    def test_close_unsubscribes(self, tracker, hub):
        tracker.start()
        assert hub.subscriber_count(GAME_STATE_CHANGED) == 1
        tracker.close()
        tracker.close()
        assert hub.subscriber_count(GAME_STATE_CHANGED) == 0


class TestPlayTimePersistence:
    def test_session_is_written_to_profile(self, tmp_path):
        hub = EventHub()
        manager = ProfileManager(ProfileRepository(tmp_path), hub)
        clock = ManualClock()
        tracker = RuntimeTracker(manager, hub, clock=clock, tick_interval=3600)

        async def scenario():
            profile = await manager.create_profile("Played")
            tracker.start()
            await hub.publish(GAME_STATE_CHANGED, {"running": True, "profileId": profile.id})
            clock.advance(5000)
            await hub.publish(GAME_STATE_CHANGED, {"running": False})
            tracker.close()
            return profile.id

        profile_id = asyncio.run(scenario())

        assert manager.get_profile(profile_id).total_play_time == 5000


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
