"""event topics, the in-process event source, and the subscription hub."""
import inspect
import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, List, Optional, Type, Union

from pydantic import BaseModel

logger = logging.getLogger(__name__)

MOD_DOWNLOAD_PROGRESS = "mod-download-progress"
BEPINEX_PROGRESS = "bepinex-progress"
GAME_STATE_CHANGED = "game-state-changed"
PROFILES_INVALIDATED = "profiles-invalidated"
DISK_FILES_INVALIDATED = "disk-files-invalidated"

Callback = Callable[[Any], Union[None, Awaitable[None]]]
Unlisten = Callable[[], None]


async def _invoke(callback: Callback, payload: Any) -> None:
    result = callback(payload)
    if inspect.isawaitable(result):
        await result


class EventSource(ABC):
    """where events come from: the native side, or the process itself."""

    @abstractmethod
    def listen(self, topic: str, handler: Callback) -> Unlisten:
        """register a handler for a topic; returns a function that removes it."""
        pass

    @abstractmethod
    async def emit(self, topic: str, payload: Any) -> None:
        """deliver a payload to every handler of the topic."""
        pass


class LocalEventSource(EventSource):
    def __init__(self):
        self._handlers: Dict[str, List[Callback]] = {}

    def listen(self, topic: str, handler: Callback) -> Unlisten:
        self._handlers.setdefault(topic, []).append(handler)

        def unlisten():
            handlers = self._handlers.get(topic, [])
            if handler in handlers:
                handlers.remove(handler)
            if not handlers:
                self._handlers.pop(topic, None)

        return unlisten

    def listener_count(self, topic: str) -> int:
        return len(self._handlers.get(topic, []))

    async def emit(self, topic: str, payload: Any) -> None:
        for handler in list(self._handlers.get(topic, [])):
            await _invoke(handler, payload)


class Subscription:
    """handle returned by ``EventHub.subscribe``; ``unsubscribe`` is idempotent."""

    def __init__(self, hub: "EventHub", topic: str, callback: Callback):
        self.hub = hub
        self.topic = topic
        self.callback = callback
        self.active = True

    def unsubscribe(self) -> None:
        if not self.active:
            return
        self.active = False
        self.hub._release(self)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.unsubscribe()


class _TopicListener:
    def __init__(self, unlisten: Unlisten):
        self.unlisten = unlisten
        self.callbacks: List[Callback] = []


class EventHub:
    """
    multiplexes subscribers onto the event source.

    each topic holds at most one listener on the source; it is registered by
    the first subscriber and removed when the last one unsubscribes.
    """

    def __init__(self, source: Optional[EventSource] = None):
        self.source = source or LocalEventSource()
        self._topics: Dict[str, _TopicListener] = {}

    def subscribe(
        self,
        topic: str,
        callback: Callback,
        model: Optional[Type[BaseModel]] = None,
    ) -> Subscription:
        """
        subscribe to a topic.

        args:
            topic: event topic name
            callback: sync or async callable receiving the payload
            model: optional pydantic model the raw payload is validated into
        """
        if model is not None:
            raw_callback = callback

            def callback(payload, _model=model, _cb=raw_callback):
                if not isinstance(payload, _model):
                    payload = _model.model_validate(payload)
                return _cb(payload)

        listener = self._topics.get(topic)
        if listener is None:
            listener = _TopicListener(unlisten=lambda: None)
            listener.unlisten = self.source.listen(topic, self._dispatcher(topic))
            self._topics[topic] = listener
            logger.debug(f"listening on {topic}")

        listener.callbacks.append(callback)
        return Subscription(self, topic, callback)

    def _dispatcher(self, topic: str) -> Callback:
        async def dispatch(payload: Any) -> None:
            listener = self._topics.get(topic)
            if listener is None:
                return
            # a failing subscriber must not reach the publisher or its peers
            for callback in list(listener.callbacks):
                try:
                    await _invoke(callback, payload)
                except Exception:
                    logger.exception(f"subscriber on {topic} failed")

        return dispatch

    def _release(self, subscription: Subscription) -> None:
        listener = self._topics.get(subscription.topic)
        if listener is None:
            return
        if subscription.callback in listener.callbacks:
            listener.callbacks.remove(subscription.callback)
        if not listener.callbacks:
            listener.unlisten()
            del self._topics[subscription.topic]
            logger.debug(f"stopped listening on {subscription.topic}")

    def subscriber_count(self, topic: str) -> int:
        listener = self._topics.get(topic)
        return len(listener.callbacks) if listener else 0

    async def publish(self, topic: str, payload: Any) -> None:
        if isinstance(payload, BaseModel):
            payload = payload.model_dump(mode="json", by_alias=True)
        await self.source.emit(topic, payload)

    def close(self) -> None:
        for listener in self._topics.values():
            listener.unlisten()
        self._topics.clear()
