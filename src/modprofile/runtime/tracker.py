import asyncio
import logging
from typing import Callable, Dict, Optional

from ..domain.errors import NotFoundError
from ..domain.models import GameState
from ..events import GAME_STATE_CHANGED, EventHub, Subscription
from ..profiles.manager import ProfileManager
from ..utils.clock import now_ms

logger = logging.getLogger(__name__)


class RuntimeTracker:
    """
    turns ``game-state-changed`` events into play-time sessions.

    each profile with running instances has its own session clock, so two
    profiles running side by side both accrue their full duration. a session
    closes when its profile's instance count drops to zero; the elapsed time
    is then added to the profile's ``total_play_time`` in a single write.

    the aggregate session is open exactly while anything is running; a 1 Hz
    tick refreshes ``current_time`` for duration display only.
    """

    def __init__(
        self,
        manager: ProfileManager,
        hub: EventHub,
        clock: Callable[[], int] = now_ms,
        tick_interval: float = 1.0,
    ):
        self.manager = manager
        self.hub = hub
        self.clock = clock
        self.tick_interval = tick_interval

        self.running = False
        self.running_count = 0
        self.current_time = clock()
        self._instance_counts: Dict[str, int] = {}
        self._session_start: Optional[int] = None
        self._profile_sessions: Dict[str, int] = {}
        self._subscription: Optional[Subscription] = None
        self._timer: Optional[asyncio.Task] = None

    def start(self) -> None:
        if self._subscription is not None:
            return
        self._subscription = self.hub.subscribe(GAME_STATE_CHANGED, self.handle_state, model=GameState)

    def close(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
        self._stop_timer()

    @property
    def session_start(self) -> Optional[int]:
        return self._session_start

    @property
    def running_profile_id(self) -> Optional[str]:
        """the most recently started profile session."""
        if not self._profile_sessions:
            return None
        return max(self._profile_sessions, key=self._profile_sessions.get)

    def is_profile_running(self, profile_id: str) -> bool:
        return self.running and self._instance_counts.get(profile_id, 0) > 0

    def get_profile_running_instance_count(self, profile_id: str) -> int:
        return self._instance_counts.get(profile_id, 0)

    def get_session_duration(self, profile_id: Optional[str] = None) -> int:
        start = self._session_start if profile_id is None else self._profile_sessions.get(profile_id)
        if start is None:
            return 0
        return max(0, self.current_time - start)

    async def handle_state(self, state: GameState) -> None:
        if state.profile_instance_counts is not None:
            counts = {pid: n for pid, n in state.profile_instance_counts.items() if n > 0}
        elif state.profile_id:
            counts = {state.profile_id: 1} if state.running else {}
        elif state.running:
            # no attribution in the payload; keep whatever was marked as launched
            counts = dict(self._instance_counts)
        else:
            counts = {}

        running = state.running and (state.running_count is None or state.running_count > 0 or bool(counts))
        if state.running_count is not None:
            running_count = state.running_count
        else:
            running_count = sum(counts.values()) or (1 if running else 0)

        await self._apply(running, running_count, counts if running else {})

    async def mark_launched(self, profile_id: Optional[str]) -> None:
        """
        open a session for a just-launched profile without waiting for the
        runtime signal; ``None`` (vanilla launch) closes every session.
        """
        if profile_id is None:
            await self._apply(False, 0, {})
            return
        if self.is_profile_running(profile_id):
            return

        counts = dict(self._instance_counts)
        counts[profile_id] = 1
        await self._apply(True, max(self.running_count, sum(counts.values())), counts)

    async def _apply(self, running: bool, running_count: int, counts: Dict[str, int]) -> None:
        now = self.clock()
        self.current_time = now

        closed = {pid: self._profile_sessions.pop(pid) for pid in list(self._profile_sessions) if pid not in counts}
        for profile_id in counts:
            if profile_id not in self._profile_sessions:
                self._profile_sessions[profile_id] = now
                logger.info(f"session started for {profile_id}")

        self._instance_counts = counts
        self.running = running
        self.running_count = running_count

        if running and self._session_start is None:
            self._session_start = now
            self._start_timer()
        elif not running:
            self._session_start = None
            self._stop_timer()

        # state is settled before any write, so a failed flush cannot leave it active
        for profile_id, started in closed.items():
            await self._flush_session(profile_id, now - started)

    async def _flush_session(self, profile_id: str, duration: int) -> None:
        if duration <= 0:
            return
        try:
            await self.manager.add_play_time(profile_id, duration)
        except NotFoundError:
            logger.warning(f"profile {profile_id} vanished before its {duration}ms session was saved")
            return
        except Exception:
            logger.exception(f"could not save {duration}ms session for {profile_id}")
            return
        logger.info(f"session ended for {profile_id} after {duration}ms")

    def _start_timer(self) -> None:
        if self._timer is not None:
            return
        self._timer = asyncio.get_running_loop().create_task(self._tick())

    def _stop_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    async def _tick(self) -> None:
        while True:
            await asyncio.sleep(self.tick_interval)
            self.current_time = self.clock()
