"""Shared fixtures: a fresh store/service per test and clients for both front‑ends."""

from __future__ import annotations

import asyncio

import grpc
import pytest
from fastapi.testclient import TestClient

from user_directory.app.core.config import Settings
from user_directory.app.core.store import UserStore
from user_directory.app.grpc_api.servicer import UserServiceStub, create_server
from user_directory.app.main import create_app
from user_directory.app.services.user_service import UserService


@pytest.fixture
def store() -> UserStore:
    return UserStore()


@pytest.fixture
def service(store: UserStore) -> UserService:
    return UserService(store)


@pytest.fixture
def http_client(service: UserService) -> TestClient:
    return TestClient(create_app(service, Settings()))


async def _with_grpc(service: UserService, body):
    server = create_server(service)
    port = server.add_insecure_port("127.0.0.1:0")
    await server.start()
    try:
        async with grpc.aio.insecure_channel(f"127.0.0.1:{port}") as channel:
            return await body(UserServiceStub(channel))
    finally:
        await server.stop(None)


@pytest.fixture
def grpc_call(service: UserService):
    """Run ``body(stub)`` against an in‑process gRPC server for ``service``."""

    def call(body):
        return asyncio.run(_with_grpc(service, body))

    return call
