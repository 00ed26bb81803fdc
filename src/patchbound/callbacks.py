"""
Error-isolated callback dispatch system.

Every component of the control plane reports changes (parameter refreshes,
transport transitions, outport messages, MIDI port state) through a
CallbackManager so that a failing observer never breaks the component that
dispatched to it.
"""

import threading
from collections import defaultdict
from typing import Callable, Optional

from patchbound.logging_config import get_logger

logger = get_logger(__name__)

# Callback type signature: observers receive whatever the emitting component passes
Callback = Callable[..., None]

# Topic used when a callback is registered without one
ANY_TOPIC = "*"


class CallbackManager:
    """
    Manages callback registration and dispatch with error isolation.

    Callbacks are registered per topic (e.g. a parameter id, "transport",
    an outport tag) or for every topic. Dispatch order is topic-specific
    callbacks first, then catch-all callbacks.
    """

    def __init__(self):
        """Initialize empty callback storage."""
        self._topic_callbacks: defaultdict[str, list[Callback]] = defaultdict(list)
        self._lock = threading.RLock()

    # Registration methods

    def register(self, callback: Callback, topic: Optional[str] = None) -> None:
        """
        Register a callback.

        Args:
            callback: Callable invoked with the dispatched arguments
            topic: Topic filter (None = every topic)
        """
        key = topic if topic is not None else ANY_TOPIC
        with self._lock:
            self._topic_callbacks[key].append(callback)
            logger.debug(f"Registered callback {self._name(callback)} (topic: {topic or 'all'})")

    def unregister(self, callback: Callback, topic: Optional[str] = None) -> bool:
        """
        Unregister a callback.

        Args:
            callback: Callback to remove
            topic: Topic it was registered under (None = catch-all)

        Returns:
            True if callback was registered and removed
        """
        key = topic if topic is not None else ANY_TOPIC
        with self._lock:
            callbacks = self._topic_callbacks.get(key)
            if callbacks and callback in callbacks:
                callbacks.remove(callback)
                logger.debug(f"Unregistered callback {self._name(callback)} (topic: {topic or 'all'})")
                return True
        return False

    # Dispatch

    def dispatch(self, topic: str, *args) -> None:
        """
        Dispatch arguments to every callback registered for topic.

        Args:
            topic: Topic being emitted
            *args: Arguments passed to each callback
        """
        # Copy callback lists under lock (copy-before-dispatch pattern)
        with self._lock:
            topic_cbs = list(self._topic_callbacks.get(topic, ()))
            any_cbs = list(self._topic_callbacks.get(ANY_TOPIC, ())) if topic != ANY_TOPIC else []

        # Execute callbacks WITHOUT holding lock (prevent deadlock)
        for callback in topic_cbs:
            self._safe_call(callback, *args)
        for callback in any_cbs:
            self._safe_call(callback, *args)

    # Helper methods

    def _safe_call(self, callback: Callable, *args) -> None:
        """
        Execute callback with exception isolation.

        Logs errors but continues with other callbacks.
        """
        try:
            callback(*args)
        except Exception as e:
            logger.exception(f"Error in callback '{self._name(callback)}': {e}")

    @staticmethod
    def _name(callback: Callable) -> str:
        return getattr(callback, "__name__", repr(callback))

    # Utility methods

    def clear_all(self) -> None:
        """Clear all registered callbacks."""
        with self._lock:
            self._topic_callbacks.clear()
            logger.debug("Cleared all callbacks")

    def get_callback_counts(self) -> dict[str, int]:
        """
        Get count of registered callbacks per topic.

        Returns:
            Dictionary mapping topic to callback count
        """
        with self._lock:
            return {topic: len(cbs) for topic, cbs in self._topic_callbacks.items() if cbs}
