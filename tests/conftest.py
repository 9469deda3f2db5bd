"""
Shared pytest fixtures for the job manager tests.

Redis is replaced by fakeredis. All clients created by a test share one
FakeServer, so a "client" manager and a "worker" manager talk to the same
data while owning separate connections, as they would in production.

Fixture Organization
--------------------
- **server**: the shared FakeServer (set ``server.connected = False`` to
  simulate an outage)
- **make_store**: builds a RedisStore on a fresh connection
- **config**: a valid Config with short intervals
- **shutdown**: shutdown event set after each test
- **client** / **worker**: started managers
"""

import threading
from typing import Callable, Generator, List

import fakeredis
import pytest

from job_manager import Config, RedisManager, RedisStore
from tests.fixtures.jobs import ScriptedJob


@pytest.fixture
def server() -> fakeredis.FakeServer:
    return fakeredis.FakeServer()


@pytest.fixture
def redis_client(server: fakeredis.FakeServer) -> fakeredis.FakeRedis:
    return fakeredis.FakeRedis(server=server, decode_responses=True)


@pytest.fixture
def make_store(server: fakeredis.FakeServer) -> Callable[[], RedisStore]:
    def factory() -> RedisStore:
        return RedisStore(fakeredis.FakeRedis(server=server, decode_responses=True))

    return factory


@pytest.fixture
def store(make_store: Callable[[], RedisStore]) -> RedisStore:
    return make_store()


@pytest.fixture
def config() -> Config:
    return Config(
        worker_name="worker-1",
        redis_host="localhost",
        redis_namespace="test",
        timeout=5.0,
        monitor_interval=0.05,
    )


@pytest.fixture
def shutdown() -> Generator[threading.Event, None, None]:
    event = threading.Event()
    yield event
    event.set()


@pytest.fixture
def make_manager(
    config: Config, make_store: Callable[[], RedisStore]
) -> Generator[Callable[..., RedisManager], None, None]:
    """
    Build managers on their own connection. Every manager created here is
    stopped after the test.
    """
    events: List[threading.Event] = []

    def factory(worker: bool = False, **overrides) -> RedisManager:
        cfg = config.model_copy(update=overrides) if overrides else config
        manager = RedisManager(ScriptedJob, cfg, store=make_store())

        shutdown = threading.Event()
        events.append(shutdown)
        if worker:
            manager.start_worker(shutdown)
        else:
            manager.start(shutdown)

        manager.wait_until_ready()
        return manager

    yield factory

    for event in events:
        event.set()


@pytest.fixture
def client(make_manager: Callable[..., RedisManager]) -> RedisManager:
    return make_manager()


@pytest.fixture
def worker(make_manager: Callable[..., RedisManager]) -> RedisManager:
    return make_manager(worker=True)
