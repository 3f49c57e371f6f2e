"""Tests for LifecycleManager startup, triggers and bounded shutdown."""

from __future__ import annotations

import asyncio
import os
import signal
import sys
import threading
import time

import grpc
import httpx
import pytest

from user_directory.app.core.config import Settings
from user_directory.app.core.store import UserStore
from user_directory.app.grpc_api import messages as pb
from user_directory.app.grpc_api.servicer import UserServiceStub
from user_directory.app.lifecycle import (
    FORCE_STOP_TIMEOUT,
    LifecycleManager,
    LifecycleState,
    StartupError,
)
from user_directory.app.server import build_manager
from user_directory.app.services.user_service import UserService


class FakeListener:
    """Listener double whose start/stop behaviour is scripted."""

    def __init__(self, name: str, stop_delay: float = 0.0, start_error: Exception | None = None) -> None:
        self.name = name
        self.stop_delay = stop_delay
        self.start_error = start_error
        self.calls: list[str] = []
        self._done = asyncio.Event()
        self._error: Exception | None = None

    async def start(self) -> None:
        self.calls.append("start")
        if self.start_error is not None:
            raise self.start_error

    async def serve(self) -> None:
        await self._done.wait()
        if self._error is not None:
            raise self._error

    async def stop(self, grace: float) -> None:
        self.calls.append("stop")
        await asyncio.sleep(self.stop_delay)
        self._done.set()

    async def force_stop(self) -> None:
        self.calls.append("force")
        self._done.set()

    def crash(self, exc: Exception) -> None:
        self._error = exc
        self._done.set()


def run(coro):
    return asyncio.run(coro)


def test_clean_shutdown_on_request():
    async def scenario():
        a, b = FakeListener("http", 0.05), FakeListener("grpc", 0.05)
        manager = LifecycleManager([a, b], grace=1.0, handle_signals=False)
        task = asyncio.create_task(manager.run())
        await manager.wait_running()
        assert manager.state is LifecycleState.RUNNING
        manager.request_stop()
        report = await task
        return manager, report, a, b

    manager, report, a, b = run(scenario())
    assert report.clean is True
    assert report.forced == []
    assert report.reason == "stop requested"
    assert manager.state is LifecycleState.STOPPED
    assert a.calls == ["start", "stop"]
    assert b.calls == ["start", "stop"]


def test_listeners_stop_concurrently():
    async def scenario():
        listeners = [FakeListener("http", 0.3), FakeListener("grpc", 0.3)]
        manager = LifecycleManager(listeners, grace=2.0, handle_signals=False)
        manager.request_stop()
        return await manager.run()

    report = run(scenario())
    assert report.clean
    # Bounded by the slower listener, not the sum of both.
    assert report.elapsed < 0.55


def test_slow_listener_is_forced_within_grace():
    grace = 0.2

    async def scenario():
        fast, slow = FakeListener("fast", 0.0), FakeListener("slow", 30.0)
        manager = LifecycleManager([fast, slow], grace=grace, handle_signals=False)
        manager.request_stop()
        loop = asyncio.get_running_loop()
        started = loop.time()
        report = await manager.run()
        return report, loop.time() - started, fast, slow

    report, elapsed, fast, slow = run(scenario())
    assert report.clean is False
    assert report.forced == ["slow"]
    assert "force" in slow.calls
    assert "force" not in fast.calls
    assert elapsed < grace + 2 * FORCE_STOP_TIMEOUT + 0.5


def test_startup_failure_aborts_and_stops_started_listeners():
    async def scenario():
        ok = FakeListener("http")
        broken = FakeListener("grpc", start_error=OSError("address already in use"))
        manager = LifecycleManager([ok, broken], grace=1.0, handle_signals=False)
        with pytest.raises(StartupError, match="grpc listener failed to start"):
            await manager.run()
        return manager, ok

    manager, ok = run(scenario())
    assert manager.state is LifecycleState.STOPPED
    assert ok.calls == ["start", "force"]


def test_listener_failure_triggers_shutdown_of_both():
    async def scenario():
        a, b = FakeListener("http"), FakeListener("grpc")
        manager = LifecycleManager([a, b], grace=1.0, handle_signals=False)
        task = asyncio.create_task(manager.run())
        await manager.wait_running()
        boom = RuntimeError("accept loop died")
        a.crash(boom)
        report = await task
        return report, boom, b

    report, boom, b = run(scenario())
    assert report.reason == "http listener failed"
    assert report.error is boom
    assert "stop" in b.calls


def test_request_stop_from_another_thread():
    async def scenario():
        manager = LifecycleManager([FakeListener("http")], grace=1.0, handle_signals=False)
        task = asyncio.create_task(manager.run())
        await manager.wait_running()
        await asyncio.to_thread(manager.request_stop, "operator")
        return await task

    assert run(scenario()).reason == "operator"


@pytest.mark.skipif(sys.platform == "win32", reason="loop signal handlers are Unix only")
def test_sigterm_triggers_shutdown():
    async def scenario():
        manager = LifecycleManager([FakeListener("http")], grace=1.0)
        task = asyncio.create_task(manager.run())
        await manager.wait_running()
        os.kill(os.getpid(), signal.SIGTERM)
        return await task

    report = run(scenario())
    assert report.reason == "received SIGTERM"
    assert report.clean


def test_real_servers_share_one_store():
    settings = Settings(http_port=0, grpc_port=0, shutdown_grace_seconds=2.0)
    service = UserService(UserStore())

    async def scenario():
        manager = build_manager(settings, service=service, handle_signals=False)
        task = asyncio.create_task(manager.run())
        await manager.wait_running()
        http, grpc_listener = manager.listeners
        async with httpx.AsyncClient(base_url=f"http://127.0.0.1:{http.port}") as client:
            response = await client.post("/api/v1/users/", json={"name": "Ada", "email": "ada@example.com"})
            assert response.status_code == 201
        async with grpc.aio.insecure_channel(f"127.0.0.1:{grpc_listener.port}") as channel:
            stub = UserServiceStub(channel)
            reply = await stub.CreateUser(pb.CreateUserRequest(name="Grace", email="grace@example.com"))
            assert reply.user.id == "2"
        manager.request_stop()
        return await task

    report = run(scenario())
    assert report.clean
    assert [u.attributes.name for u in service.list()] == ["Ada", "Grace"]


def test_real_server_bind_conflict_is_a_startup_error():
    async def scenario():
        first = build_manager(Settings(http_port=0, grpc_port=0), handle_signals=False)
        first_task = asyncio.create_task(first.run())
        await first.wait_running()
        taken = first.listeners[0].port
        second = build_manager(Settings(http_port=taken, grpc_port=0), handle_signals=False)
        try:
            with pytest.raises(StartupError, match="http listener failed to start"):
                await second.run()
        finally:
            first.request_stop()
            await first_task
        return second

    assert run(scenario()).state is LifecycleState.STOPPED



class SignallingListener(FakeListener):
    """Delivers a signal to the process while it is starting."""

    def __init__(self, name: str, signum: int) -> None:
        super().__init__(name)
        self.signum = signum

    async def start(self) -> None:
        await super().start()
        os.kill(os.getpid(), self.signum)
        await asyncio.sleep(0.05)


@pytest.mark.skipif(sys.platform == "win32", reason="loop signal handlers are Unix only")
def test_signal_during_startup_is_queued():
    async def scenario():
        listener = SignallingListener("http", signal.SIGTERM)
        manager = LifecycleManager([listener, FakeListener("grpc")], grace=1.0)
        return await manager.run(), listener

    report, listener = run(scenario())
    assert report.reason == "received SIGTERM"
    assert report.clean
    assert listener.calls == ["start", "stop"]


class SlowUserService(UserService):
    """Holds every create for ``delay`` seconds."""

    def __init__(self, delay: float) -> None:
        super().__init__(UserStore())
        self.delay = delay
        self.entered = threading.Event()

    def create(self, attributes):
        self.entered.set()
        time.sleep(self.delay)
        return super().create(attributes)


async def _create_over(protocol: str, port: int):
    if protocol == "http":
        async with httpx.AsyncClient(base_url=f"http://127.0.0.1:{port}", timeout=10) as client:
            response = await client.post("/api/v1/users/", json={"name": "Ada", "email": "ada@example.com"})
            return response.status_code
    async with grpc.aio.insecure_channel(f"127.0.0.1:{port}") as channel:
        reply = await UserServiceStub(channel).CreateUser(pb.CreateUserRequest(name="Ada", email="ada@example.com"))
        return reply.user.id


def _stop_with_request_in_flight(protocol: str, delay: float, grace: float):
    service = SlowUserService(delay)
    settings = Settings(http_port=0, grpc_port=0, shutdown_grace_seconds=grace)

    async def scenario():
        manager = build_manager(settings, service=service, handle_signals=False)
        task = asyncio.create_task(manager.run())
        await manager.wait_running()
        listener = next(l for l in manager.listeners if l.name == protocol)
        request = asyncio.create_task(_create_over(protocol, listener.port))
        assert await asyncio.to_thread(service.entered.wait, 5)
        manager.request_stop()
        report = await task
        outcome = (await asyncio.gather(request, return_exceptions=True))[0]
        return report, outcome

    return run(scenario())


@pytest.mark.parametrize("protocol, expected", [("http", 201), ("grpc", "1")])
def test_in_flight_request_finishing_within_grace_is_clean(protocol, expected):
    report, outcome = _stop_with_request_in_flight(protocol, delay=0.3, grace=3.0)
    assert report.clean
    assert report.forced == []
    assert outcome == expected


@pytest.mark.parametrize("protocol, error", [("http", httpx.HTTPError), ("grpc", grpc.aio.AioRpcError)])
def test_in_flight_request_past_grace_is_abandoned(protocol, error):
    grace = 0.3
    report, outcome = _stop_with_request_in_flight(protocol, delay=1.5, grace=grace)
    assert report.clean is False
    assert report.forced == [protocol]
    assert report.elapsed < grace + 2 * FORCE_STOP_TIMEOUT
    assert isinstance(outcome, error)
