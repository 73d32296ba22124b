"""
Session store: the single source of truth for the observable auth state.
"""

import dataclasses
import logging
from collections.abc import Callable
from typing import Any, Optional

from .models import AuthState

logger = logging.getLogger(__name__)

Listener = Callable[[AuthState], None]


class SessionStore:
    """
    Passive container for :class:`AuthState`.

    Every mutation goes through :meth:`set_state`, which merges the changes
    into a new immutable snapshot and then calls each subscriber
    synchronously with it. A failing listener is logged and skipped; the
    store itself never raises.
    """

    def __init__(self, initial: Optional[AuthState] = None):
        self._state = initial or AuthState()
        self._listeners: list[Listener] = []

    def get_state(self) -> AuthState:
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a listener called after every state change.

        Returns:
            Function that removes the listener; calling it twice is harmless
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def set_state(self, **changes: Any) -> AuthState:
        # Initialization happens once per application load
        if self._state.is_initialized and changes.get("is_initialized") is False:
            changes.pop("is_initialized")

        self._state = dataclasses.replace(self._state, **changes)
        self._log_transition(changes)
        self._notify()
        return self._state

    def _notify(self) -> None:
        state = self._state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.exception(f"Auth state listener {listener!r} failed")

    def _log_transition(self, changes: dict[str, Any]) -> None:
        if not logger.isEnabledFor(logging.DEBUG):
            return
        state = self._state
        logger.debug(
            f"Auth state changed ({', '.join(sorted(changes)) or 'no fields'}): "
            f"user={'present' if state.user else 'none'}, "
            f"profile={'present' if state.profile else 'none'}, "
            f"loading={state.is_loading}, "
            f"error={state.error.kind.value if state.error else 'none'}, "
            f"initialized={state.is_initialized}"
        )
