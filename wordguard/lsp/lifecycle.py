"""Server lifecycle state machine.

Every inbound message is admitted or refused here, in arrival order, before
its handler runs. Transitions happen at admission time so the decision for
the next message already sees them.
"""

import logging
from enum import Enum

from lsprotocol.types import CANCEL_REQUEST, EXIT, INITIALIZE, INITIALIZED, SHUTDOWN

from .protocol import ErrorCodes, ResponseError


class LifecycleState(Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    ACTIVE = "active"
    SHUTTING_DOWN = "shutting_down"
    EXITED = "exited"


class Lifecycle:
    def __init__(self, auto_activate: bool = False, logger: logging.Logger | None = None):
        self.state = LifecycleState.UNINITIALIZED
        self.auto_activate = auto_activate
        self.shutdown_received = False
        self._logger = logger or logging.getLogger(__name__)

    @property
    def exited(self) -> bool:
        return self.state is LifecycleState.EXITED

    @property
    def exit_code(self) -> int:
        """0 after an orderly shutdown, 1 otherwise"""
        return 0 if self.shutdown_received else 1

    def _transition(self, state: LifecycleState) -> None:
        self._logger.debug(f"Lifecycle {self.state.value} -> {state.value}")
        self.state = state

    def admit_request(self, method: str) -> None:
        """Admit a request or raise the ResponseError to answer it with."""
        state = self.state

        if state is LifecycleState.UNINITIALIZED:
            if method == INITIALIZE:
                self._transition(LifecycleState.INITIALIZING)
                return
            raise ResponseError(ErrorCodes.ServerNotInitialized, "Server not initialized")

        if state in (LifecycleState.SHUTTING_DOWN, LifecycleState.EXITED):
            raise ResponseError(ErrorCodes.InvalidRequest, "Server is shutting down")

        if method == INITIALIZE:
            raise ResponseError(ErrorCodes.InvalidRequest, "Server already initialized")

        if method == SHUTDOWN:
            self.shutdown_received = True
            self._transition(LifecycleState.SHUTTING_DOWN)
            return

        if state is LifecycleState.INITIALIZING:
            raise ResponseError(ErrorCodes.ServerNotInitialized, "Server not initialized")

    def admit_notification(self, method: str) -> bool:
        """Admit a notification. Refused notifications are logged and dropped."""
        state = self.state

        if method == EXIT:
            self._transition(LifecycleState.EXITED)
            return True

        if state is LifecycleState.UNINITIALIZED:
            return self._drop(method, "server not initialized")

        if method == CANCEL_REQUEST and state is not LifecycleState.EXITED:
            return True

        if state is LifecycleState.INITIALIZING:
            if method == INITIALIZED:
                self._transition(LifecycleState.ACTIVE)
                return True
            return self._drop(method, "server still initializing")

        if state is LifecycleState.ACTIVE:
            if method == INITIALIZED:
                return self._drop(method, "server already initialized")
            return True

        return self._drop(method, f"server is {state.value}")

    def initialize_answered(self) -> None:
        """Called once the initialize response has been sent."""
        if self.auto_activate and self.state is LifecycleState.INITIALIZING:
            self._transition(LifecycleState.ACTIVE)

    def initialize_failed(self) -> None:
        """Called when the initialize request was answered with an error.

        The handshake never completed, so the session goes back to waiting
        for a correct initialize. An early ``initialized`` may already have
        activated it; that is undone too.
        """
        if self.state in (LifecycleState.INITIALIZING, LifecycleState.ACTIVE):
            self._logger.warning("Initialize failed, waiting for a new initialize request")
            self._transition(LifecycleState.UNINITIALIZED)

    def _drop(self, method: str, reason: str) -> bool:
        self._logger.warning(f"Dropped notification {method}: {reason}")
        return False
