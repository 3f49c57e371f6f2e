"""HTTP vs gRPC benchmark client for the User Directory.

This script creates users against a running server over both
protocols and prints latency statistics for each.  HTTP calls go
through a ``requests`` session; gRPC calls through a blocking
``grpc`` channel and the ``UserServiceStub`` shipped with the server
package.

Each protocol gets a warm‑up phase whose timings are discarded,
followed by ``iterations`` timed calls spread over ``concurrency``
worker threads.  Any failed call aborts the run.

Configuration is taken from environment variables:

* ``BENCH_HTTP_BASE_URL`` – default ``http://127.0.0.1:8087``
* ``BENCH_GRPC_ADDR`` – default ``127.0.0.1:50055``
* ``BENCH_ITERATIONS`` – default ``100``
* ``BENCH_CONCURRENCY`` – default ``5``
* ``BENCH_WARMUP`` – default ``20``
* ``BENCH_RPC_TIMEOUT_MS`` – default ``2000``

Invalid values fall back to the defaults.

Usage:
    python bench_client.py
"""

from __future__ import annotations

import logging
import math
import statistics
import sys
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, List, Sequence

import grpc
import requests

from user_directory.app.core.config import env_int, env_str
from user_directory.app.core.logging_config import setup_logging
from user_directory.app.grpc_api import messages as pb
from user_directory.app.grpc_api.servicer import UserServiceStub


logger = logging.getLogger(__name__)

USERS_PATH = "/api/v1/users/"


class BenchmarkError(RuntimeError):
    """A request failed during the benchmark."""


@dataclass
class BenchConfig:
    """Benchmark settings; see the module docstring for variables."""

    http_base_url: str = "http://127.0.0.1:8087"
    grpc_addr: str = "127.0.0.1:50055"
    iterations: int = 100
    concurrency: int = 5
    warmup: int = 20
    rpc_timeout_ms: int = 2000

    @classmethod
    def from_env(cls) -> "BenchConfig":
        return cls(
            http_base_url=env_str("BENCH_HTTP_BASE_URL", cls.http_base_url).rstrip("/"),
            grpc_addr=env_str("BENCH_GRPC_ADDR", cls.grpc_addr),
            iterations=env_int("BENCH_ITERATIONS", cls.iterations, minimum=1),
            concurrency=env_int("BENCH_CONCURRENCY", cls.concurrency, minimum=1),
            warmup=env_int("BENCH_WARMUP", cls.warmup, minimum=0),
            rpc_timeout_ms=env_int("BENCH_RPC_TIMEOUT_MS", cls.rpc_timeout_ms, minimum=1),
        )

    @property
    def timeout(self) -> float:
        return self.rpc_timeout_ms / 1000.0


@dataclass
class Stats:
    count: int
    avg: float
    minimum: float
    maximum: float
    p50: float
    p95: float

    def format(self) -> str:
        return (
            f"n={self.count} | avg={self.avg * 1000:.3f}ms | min={self.minimum * 1000:.3f}ms | "
            f"max={self.maximum * 1000:.3f}ms | p50={self.p50 * 1000:.3f}ms | p95={self.p95 * 1000:.3f}ms"
        )


def _percentile(ordered: Sequence[float], fraction: float) -> float:
    # Nearest-rank on an already sorted sample.
    index = max(0, min(len(ordered) - 1, math.ceil(fraction * len(ordered)) - 1))
    return ordered[index]


def summarize(samples: Sequence[float]) -> Stats:
    """Reduce per‑call durations (seconds) to summary statistics."""
    if not samples:
        raise ValueError("no samples to summarize")
    ordered = sorted(samples)
    return Stats(
        count=len(ordered),
        avg=statistics.fmean(ordered),
        minimum=ordered[0],
        maximum=ordered[-1],
        p50=_percentile(ordered, 0.50),
        p95=_percentile(ordered, 0.95),
    )


def run_batch(call: Callable[[int], None], iterations: int, concurrency: int, offset: int = 0) -> List[float]:
    """Invoke ``call(i)`` for ``iterations`` indexes and time each call.

    Calls are spread over ``concurrency`` threads.  The first exception
    raised by a call propagates to the caller.
    """

    def timed(i: int) -> float:
        start = time.perf_counter()
        call(offset + i)
        return time.perf_counter() - start

    with ThreadPoolExecutor(max_workers=concurrency) as pool:
        return list(pool.map(timed, range(iterations)))


class HttpBench:
    """Creates users with ``POST /api/v1/users/``."""

    def __init__(self, config: BenchConfig, session: requests.Session | None = None) -> None:
        self.url = f"{config.http_base_url}{USERS_PATH}"
        self.timeout = config.timeout
        self._session = session
        self._local = threading.local()

    def _get_session(self) -> requests.Session:
        # Sessions are not thread safe; one per worker thread.
        if self._session is not None:
            return self._session
        session = getattr(self._local, "session", None)
        if session is None:
            session = self._local.session = requests.Session()
        return session

    def create(self, i: int) -> None:
        payload = {"name": f"User-{i}", "email": f"user{i}@example.com"}
        try:
            response = self._get_session().post(self.url, json=payload, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            raise BenchmarkError(f"HTTP request failed: {exc}") from exc


class GrpcBench:
    """Creates users with ``UserService/CreateUser``."""

    def __init__(self, config: BenchConfig) -> None:
        self.timeout = config.timeout
        self._channel = grpc.insecure_channel(config.grpc_addr)
        self._stub = UserServiceStub(self._channel)

    def create(self, i: int) -> None:
        request = pb.CreateUserRequest(name=f"GrpcUser-{i}", email=f"grpc{i}@example.com")
        try:
            self._stub.CreateUser(request, timeout=self.timeout)
        except grpc.RpcError as exc:
            raise BenchmarkError(f"gRPC call failed: {exc.code().name} {exc.details()}") from exc

    def close(self) -> None:
        self._channel.close()


def measure(name: str, call: Callable[[int], None], config: BenchConfig) -> Stats:
    if config.warmup:
        logger.info("%s: warming up with %d calls", name, config.warmup)
        run_batch(call, config.warmup, config.concurrency)
    samples = run_batch(call, config.iterations, config.concurrency, offset=config.warmup)
    return summarize(samples)


def main() -> int:
    setup_logging("INFO")
    config = BenchConfig.from_env()
    print("=== Benchmark: HTTP vs gRPC ===")
    print(
        f"iterations={config.iterations} concurrency={config.concurrency} "
        f"warmup={config.warmup} timeout={config.rpc_timeout_ms}ms"
    )
    grpc_bench = GrpcBench(config)
    try:
        http_stats = measure("HTTP", HttpBench(config).create, config)
        grpc_stats = measure("gRPC", grpc_bench.create, config)
    except BenchmarkError as exc:
        logger.error("%s", exc)
        return 1
    finally:
        grpc_bench.close()
    print()
    print(f"HTTP: {http_stats.format()}")
    print(f"gRPC: {grpc_stats.format()}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
