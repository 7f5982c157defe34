"""Service lifecycle: bootstrap, listen, drain, stop.

The controller owns the process from configuration loading to exit. It
binds the listening socket itself, serves with uvicorn and takes over
signal handling from it, so that a shutdown request first stops accepting
connections and then gives in-flight requests a bounded grace period.

State machine::

    INITIALIZING -> LISTENING -> DRAINING -> STOPPED
    INITIALIZING -> FAILED     (listener could not be bound)
    LISTENING    -> FAILED     (server terminated on its own)

Any other transition raises LifecycleError.
"""

from __future__ import annotations

import asyncio
import contextlib
import signal
import socket
from collections.abc import Generator
from enum import Enum
from typing import TYPE_CHECKING, Final

import uvicorn
from pydantic import ValidationError as SettingsValidationError
from pydantic_settings import SettingsError

from backbone.api.main import create_app
from backbone.core.config import get_settings
from backbone.core.logging import setup_logging, uvicorn_log_config

if TYPE_CHECKING:
    from fastapi import FastAPI
    from loguru import Logger

    from backbone.api.middleware.in_flight import InFlightTracker
    from backbone.core.config import Settings

SHUTDOWN_SIGNALS: Final[tuple[signal.Signals, ...]] = (signal.SIGINT, signal.SIGTERM)


class LifecycleState(Enum):
    """Phases of the service process."""

    INITIALIZING = "initializing"
    LISTENING = "listening"
    DRAINING = "draining"
    STOPPED = "stopped"
    FAILED = "failed"


_ALLOWED_TRANSITIONS: Final[dict[LifecycleState, frozenset[LifecycleState]]] = {
    LifecycleState.INITIALIZING: frozenset(
        {LifecycleState.LISTENING, LifecycleState.FAILED}
    ),
    LifecycleState.LISTENING: frozenset(
        {LifecycleState.DRAINING, LifecycleState.FAILED}
    ),
    LifecycleState.DRAINING: frozenset({LifecycleState.STOPPED}),
    LifecycleState.STOPPED: frozenset(),
    LifecycleState.FAILED: frozenset(),
}


class LifecycleError(RuntimeError):
    """Raised on a transition the state machine does not allow."""


class ConfigurationError(RuntimeError):
    """Raised when settings cannot be loaded or validated."""


class _SignalNeutralServer(uvicorn.Server):
    """uvicorn server that leaves signal handling to the controller."""

    @contextlib.contextmanager
    def capture_signals(self) -> Generator[None]:
        yield


def bind_listener(host: str, port: int) -> socket.socket:
    """Bind and listen on ``host:port``.

    Raises:
        OSError: If the address cannot be bound.
    """
    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    return socket.create_server((host, port), family=family)


class LifecycleController:
    """Drives the service from bootstrap to exit.

    Args:
        settings: Loaded application settings.
        log: Service logger handle.
        app: Application to serve; built with create_app when omitted.
    """

    def __init__(
        self,
        settings: Settings,
        log: Logger,
        app: FastAPI | None = None,
    ) -> None:
        self.settings = settings
        self.log = log
        self.app = app if app is not None else create_app(settings, log)
        self.state = LifecycleState.INITIALIZING
        self.server: uvicorn.Server | None = None
        self.bound_address: tuple[str, int] | None = None
        self._shutdown_requested = asyncio.Event()

    @classmethod
    def bootstrap(cls) -> LifecycleController:
        """Load settings, configure logging and build the application.

        Returns:
            LifecycleController: Controller in the INITIALIZING state.

        Raises:
            ConfigurationError: If the settings are missing or invalid.
        """
        try:
            settings = get_settings()
        except (SettingsValidationError, SettingsError) as exc:
            raise ConfigurationError(str(exc)) from exc

        log = setup_logging(settings)
        return cls(settings, log)

    @property
    def in_flight(self) -> InFlightTracker:
        """Tracker of requests currently being processed."""
        tracker: InFlightTracker = self.app.state.in_flight
        return tracker

    def transition(self, target: LifecycleState) -> None:
        """Move to ``target``.

        Raises:
            LifecycleError: If the transition is not allowed from the current state.
        """
        if target not in _ALLOWED_TRANSITIONS[self.state]:
            msg = f"Illegal lifecycle transition {self.state.name} -> {target.name}"
            raise LifecycleError(msg)

        self.log.debug("Lifecycle {} -> {}", self.state.name, target.name)
        self.state = target

    def request_shutdown(self, signum: int | None = None) -> None:
        """Ask the service to drain and stop.

        A second request while draining makes the server stop waiting for
        open connections.
        """
        if self._shutdown_requested.is_set():
            if self.server is not None and not self.server.force_exit:
                self.log.warning("Repeated shutdown request, forcing exit")
                self.server.force_exit = True
            return

        reason = signal.Signals(signum).name if signum is not None else "request"
        self.log.info("Shutdown requested ({})", reason)
        self._shutdown_requested.set()

    async def run(self) -> LifecycleState:
        """Serve until shutdown and return the terminal state.

        Returns:
            LifecycleState: STOPPED after a clean or forced drain, FAILED when
                the listener could not be bound or the server died.
        """
        host, port = self.settings.api_host, self.settings.api_port
        try:
            sock = bind_listener(host, port)
        except OSError as exc:
            self.log.opt(exception=exc).critical("Failed to bind {}:{}", host, port)
            self.transition(LifecycleState.FAILED)
            return self.state

        self.bound_address = sock.getsockname()[:2]
        grace = self.settings.server_config.shutdown_grace_seconds
        self.server = _SignalNeutralServer(
            uvicorn.Config(
                self.app,
                host=host,
                port=self.bound_address[1],
                log_config=uvicorn_log_config(),
                timeout_graceful_shutdown=grace,
            )
        )

        loop = asyncio.get_running_loop()
        self._install_signal_handlers(loop)
        try:
            self.transition(LifecycleState.LISTENING)
            self.log.info(
                "Listening on http://{}:{}", self.bound_address[0], self.bound_address[1]
            )
            serve_task = asyncio.create_task(
                self.server.serve(sockets=[sock]), name="http-server"
            )
            shutdown_task = asyncio.create_task(
                self._shutdown_requested.wait(), name="shutdown-request"
            )
            done, _ = await asyncio.wait(
                {serve_task, shutdown_task}, return_when=asyncio.FIRST_COMPLETED
            )

            if serve_task in done:
                shutdown_task.cancel()
                self._report_server_exit(serve_task)
                self.transition(LifecycleState.FAILED)
                return self.state

            await self._drain(self.server, serve_task, grace)
            self.transition(LifecycleState.STOPPED)
            self.log.info("Service stopped")
            return self.state
        finally:
            self._remove_signal_handlers(loop)
            sock.close()

    async def _drain(
        self, server: uvicorn.Server, serve_task: asyncio.Task[None], grace: float
    ) -> None:
        self.transition(LifecycleState.DRAINING)
        self.log.info(
            "Draining {} in-flight request(s), grace period {}s",
            self.in_flight.active,
            grace,
        )
        # uvicorn stops accepting and cancels leftover tasks after the grace period
        server.should_exit = True

        if not await self.in_flight.wait_idle(grace):
            self.log.warning(
                "Grace period elapsed with {} request(s) in flight, forcing shutdown",
                self.in_flight.active,
            )

        try:
            await serve_task
        except Exception as exc:  # noqa: BLE001 - the process is stopping regardless
            self.log.opt(exception=exc).error("Server raised during shutdown")

    def _report_server_exit(self, serve_task: asyncio.Task[None]) -> None:
        if serve_task.cancelled():
            self.log.critical("Server task was cancelled unexpectedly")
        elif (exc := serve_task.exception()) is not None:
            self.log.opt(exception=exc).critical("Server crashed")
        else:
            self.log.critical("Server exited without a shutdown request")

    def _install_signal_handlers(self, loop: asyncio.AbstractEventLoop) -> None:
        for sig in SHUTDOWN_SIGNALS:
            try:
                loop.add_signal_handler(sig, self.request_shutdown, sig)
            except NotImplementedError:
                signal.signal(
                    sig,
                    lambda signum, _frame: loop.call_soon_threadsafe(
                        self.request_shutdown, signum
                    ),
                )

    def _remove_signal_handlers(self, loop: asyncio.AbstractEventLoop) -> None:
        for sig in SHUTDOWN_SIGNALS:
            try:
                loop.remove_signal_handler(sig)
            except NotImplementedError:
                signal.signal(
                    sig,
                    signal.default_int_handler if sig is signal.SIGINT else signal.SIG_DFL,
                )
