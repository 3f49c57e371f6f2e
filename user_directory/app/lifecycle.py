"""
Process lifecycle: start both listeners, wait, shut both down.

``LifecycleManager`` drives the state machine
``STARTING → RUNNING → SHUTTING_DOWN → STOPPED`` over a set of
listeners (normally ``HttpListener`` and ``GrpcListener`` sharing one
``UserService``):

* Listeners start concurrently.  If any fails to start, the ones that
  did start are force‑stopped and ``StartupError`` is raised.
* While running, every reason to stop is put on one queue: SIGINT or
  SIGTERM, a listener that fails or stops on its own, or a call to
  ``request_stop``.  The manager is the only consumer and the first
  item it takes ends the run.
* Shutdown asks all listeners to stop at the same time under a single
  grace budget.  Whatever is still running when the budget is spent is
  force‑stopped, abandoning its outstanding requests.

``run`` returns a ``ShutdownReport`` describing what happened.
"""

import asyncio
import contextlib
import logging
import signal
import socket
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Protocol, Sequence

import grpc
import uvicorn

logger = logging.getLogger(__name__)

# Upper bound for a forced stop to take effect.
FORCE_STOP_TIMEOUT = 0.5


class LifecycleState(str, Enum):
    STARTING = "starting"
    RUNNING = "running"
    SHUTTING_DOWN = "shutting_down"
    STOPPED = "stopped"


class StartupError(RuntimeError):
    """A listener could not be brought up; the process must not run."""


class ListenerError(RuntimeError):
    """A listener stopped serving without being asked to."""


@dataclass
class Trigger:
    """Reason the manager left ``RUNNING``."""

    reason: str
    error: Optional[BaseException] = None


@dataclass
class ShutdownReport:
    reason: str
    clean: bool
    forced: List[str] = field(default_factory=list)
    elapsed: float = 0.0
    error: Optional[BaseException] = None


class Listener(Protocol):
    name: str

    async def start(self) -> None: ...

    async def serve(self) -> None: ...

    async def stop(self, grace: float) -> None: ...

    async def force_stop(self) -> None: ...


def _format_address(host: str, port: int) -> str:
    if ":" in host and not host.startswith("["):
        return f"[{host}]:{port}"
    return f"{host}:{port}"


class _UvicornServer(uvicorn.Server):
    """uvicorn server that leaves signal handling to the manager."""

    def install_signal_handlers(self) -> None:
        pass

    @contextlib.contextmanager
    def capture_signals(self):
        yield


class HttpListener:
    """Serves an ASGI app with uvicorn on a socket bound in ``start``.

    Binding the socket ourselves makes an address conflict raise
    ``OSError`` from ``start`` instead of uvicorn exiting the process.
    ``port`` holds the actual port once started, which matters when
    port 0 was requested.  Logger levels are left to ``setup_logging``.
    """

    name = "http"

    def __init__(self, app, host: str, port: int) -> None:
        self.host = host
        self.port = port
        self._config = uvicorn.Config(app, host=host, port=port, log_config=None, log_level=None)
        self._server: Optional[_UvicornServer] = None
        self._task: Optional[asyncio.Task] = None
        self._stopping = False

    async def start(self) -> None:
        family = socket.AF_INET6 if ":" in self.host else socket.AF_INET
        sock = socket.socket(family, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((self.host, self.port))
        except OSError:
            sock.close()
            raise
        self.port = sock.getsockname()[1]
        self._server = _UvicornServer(self._config)
        self._task = asyncio.ensure_future(self._server.serve(sockets=[sock]))
        # uvicorn exposes no startup event, only the ``started`` flag.
        while not self._server.started:
            if self._task.done():
                self._task.result()
                raise ListenerError("HTTP server exited during startup")
            await asyncio.sleep(0.01)
        logger.info("HTTP server listening on http://%s", _format_address(self.host, self.port))

    async def serve(self) -> None:
        await asyncio.shield(self._task)
        if not self._stopping:
            raise ListenerError("HTTP server stopped unexpectedly")

    async def stop(self, grace: float) -> None:
        # uvicorn drains open connections itself; the manager enforces ``grace``.
        self._stopping = True
        if self._server is None:
            return
        self._server.should_exit = True
        await asyncio.wait({self._task})

    async def force_stop(self) -> None:
        self._stopping = True
        if self._server is None or self._task.done():
            return
        logger.warning("Forcing HTTP server shutdown")
        self._server.should_exit = True
        self._server.force_exit = True
        # Drop open connections so in-flight requests get no response.
        for connection in list(self._server.server_state.connections):
            connection.transport.close()
        done, _ = await asyncio.wait({self._task}, timeout=FORCE_STOP_TIMEOUT)
        if not done:
            self._task.cancel()
            await asyncio.gather(self._task, return_exceptions=True)


class GrpcListener:
    """Runs a ``grpc.aio`` server on the given address."""

    name = "grpc"

    def __init__(self, server: grpc.aio.Server, host: str, port: int) -> None:
        self.host = host
        self.port = port
        self._server = server
        self._task: Optional[asyncio.Task] = None
        self._stopping = False

    async def start(self) -> None:
        address = _format_address(self.host, self.port)
        bound = self._server.add_insecure_port(address)
        if not bound:
            raise OSError(f"failed to bind gRPC server to {address}")
        self.port = bound
        await self._server.start()
        self._task = asyncio.ensure_future(self._server.wait_for_termination())
        logger.info("gRPC server listening on %s", _format_address(self.host, self.port))

    async def serve(self) -> None:
        await asyncio.shield(self._task)
        if not self._stopping:
            raise ListenerError("gRPC server stopped unexpectedly")

    async def stop(self, grace: float) -> None:
        self._stopping = True
        await self._server.stop(grace)

    async def force_stop(self) -> None:
        self._stopping = True
        logger.warning("Forcing gRPC server shutdown")
        await self._server.stop(0)


class LifecycleManager:
    """Starts listeners together and shuts them down together.

    Parameters
    ----------
    listeners : Sequence[Listener]
        Listeners to manage, usually one per protocol.
    grace : float
        Seconds shared by all listeners to finish in‑flight work once
        shutdown begins.
    handle_signals : bool
        Install SIGINT/SIGTERM handlers while running.  Tests that run
        the manager off the main thread turn this off.
    """

    def __init__(self, listeners: Sequence[Listener], grace: float, handle_signals: bool = True) -> None:
        self.listeners = list(listeners)
        self.grace = max(0.0, float(grace))
        self.state = LifecycleState.STARTING
        self._handle_signals = handle_signals
        self._triggers: "asyncio.Queue[Trigger]" = asyncio.Queue()
        self._running = asyncio.Event()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._serve_tasks: Dict[asyncio.Task, Listener] = {}
        self._signals: List[signal.Signals] = []

    def request_stop(self, reason: str = "stop requested") -> None:
        """Ask a running manager to shut down.  Safe from any thread."""
        trigger = Trigger(reason)
        if self._loop is None:
            self._triggers.put_nowait(trigger)
        else:
            self._loop.call_soon_threadsafe(self._triggers.put_nowait, trigger)

    async def wait_running(self) -> None:
        await self._running.wait()

    async def run(self) -> ShutdownReport:
        """Start, serve until triggered, shut down, return a report."""
        self._loop = asyncio.get_running_loop()
        # Signals that arrive while starting are queued like any other trigger.
        self._install_signal_handlers()
        try:
            await self._start()
            self.state = LifecycleState.RUNNING
            self._running.set()
            try:
                trigger = await self._triggers.get()
            except asyncio.CancelledError:
                await self._shutdown(Trigger("cancelled"))
                raise
        finally:
            self._remove_signal_handlers()
        if trigger.error is not None:
            logger.error("Shutting down: %s (%s)", trigger.reason, trigger.error)
        else:
            logger.info("Shutting down: %s", trigger.reason)
        return await self._shutdown(trigger)

    async def _start(self) -> None:
        self.state = LifecycleState.STARTING
        results = await asyncio.gather(*(listener.start() for listener in self.listeners), return_exceptions=True)
        failures = [(l, r) for l, r in zip(self.listeners, results) if isinstance(r, BaseException)]
        if failures:
            started = [l for l, r in zip(self.listeners, results) if not isinstance(r, BaseException)]
            await asyncio.gather(*(l.force_stop() for l in started), return_exceptions=True)
            self.state = LifecycleState.STOPPED
            listener, exc = failures[0]
            raise StartupError(f"{listener.name} listener failed to start: {exc}") from exc
        for listener in self.listeners:
            task = asyncio.ensure_future(listener.serve())
            task.add_done_callback(self._on_serve_done)
            self._serve_tasks[task] = listener

    def _on_serve_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            listener = self._serve_tasks[task]
            self._triggers.put_nowait(Trigger(f"{listener.name} listener failed", exc))

    def _on_signal(self, sig: signal.Signals) -> None:
        logger.info("Received %s", sig.name)
        self._triggers.put_nowait(Trigger(f"received {sig.name}"))

    def _install_signal_handlers(self) -> None:
        if not self._handle_signals:
            return
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                self._loop.add_signal_handler(sig, self._on_signal, sig)
            except (NotImplementedError, RuntimeError, ValueError):
                logger.debug("Cannot install handler for %s on this platform", sig.name)
                continue
            self._signals.append(sig)

    def _remove_signal_handlers(self) -> None:
        for sig in self._signals:
            self._loop.remove_signal_handler(sig)
        self._signals.clear()

    async def _shutdown(self, trigger: Trigger) -> ShutdownReport:
        self.state = LifecycleState.SHUTTING_DOWN
        started_at = self._loop.time()
        stops = {asyncio.ensure_future(l.stop(self.grace)): l for l in self.listeners}
        done, pending = await asyncio.wait(stops, timeout=self.grace)

        to_force = [stops[t] for t in pending]
        for task in done:
            if task.cancelled() or task.exception() is None:
                continue
            listener = stops[task]
            logger.error("Graceful stop of %s listener failed: %s", listener.name, task.exception())
            to_force.append(listener)

        if to_force:
            logger.warning(
                "Grace period of %.1fs exhausted, forcing %s",
                self.grace,
                ", ".join(l.name for l in to_force),
            )
            results = await asyncio.gather(*(l.force_stop() for l in to_force), return_exceptions=True)
            for listener, result in zip(to_force, results):
                if isinstance(result, BaseException):
                    logger.error("Forced stop of %s listener failed: %s", listener.name, result)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

        if self._serve_tasks:
            _, stuck = await asyncio.wait(self._serve_tasks, timeout=FORCE_STOP_TIMEOUT)
            for task in stuck:
                task.cancel()
            await asyncio.gather(*self._serve_tasks, return_exceptions=True)

        elapsed = self._loop.time() - started_at
        self.state = LifecycleState.STOPPED
        clean = not to_force
        if clean:
            logger.info("Servers shut down cleanly in %.2fs", elapsed)
        else:
            logger.warning("Servers shut down after forcing %s in %.2fs", ", ".join(l.name for l in to_force), elapsed)
        return ShutdownReport(
            reason=trigger.reason,
            clean=clean,
            forced=[l.name for l in to_force],
            elapsed=elapsed,
            error=trigger.error,
        )
