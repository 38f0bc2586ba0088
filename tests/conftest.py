"""
Shared fixtures for the evtcp test suite.
"""

import asyncio
import socket
from typing import Any, Awaitable, Callable, Generator, List, Optional

import pytest
from loguru import logger

ServerHandler = Callable[[asyncio.StreamReader, asyncio.StreamWriter], Awaitable[None]]


class FakeClock:
    """Manually advanced clock, in seconds."""

    def __init__(self) -> None:
        self._elapsed_ms = 0

    @property
    def now(self) -> float:
        return self._elapsed_ms / 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: int) -> None:
        self._elapsed_ms += ms


class LoopbackServer:
    """asyncio TCP server on 127.0.0.1 with an ephemeral port."""

    def __init__(self, handler: Optional[ServerHandler] = None) -> None:
        self._handler = handler
        self.server: Optional[asyncio.AbstractServer] = None
        self.port = 0
        self.writers: List[asyncio.StreamWriter] = []
        self.received = bytearray()

    @classmethod
    async def start(cls, handler: Optional[ServerHandler] = None) -> "LoopbackServer":
        instance = cls(handler)
        instance.server = await asyncio.start_server(instance._handle, "127.0.0.1", 0)
        instance.port = instance.server.sockets[0].getsockname()[1]
        return instance

    async def _handle(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self.writers.append(writer)
        try:
            if self._handler is not None:
                await self._handler(reader, writer)
            else:
                while True:
                    data = await reader.read(4096)
                    if not data:
                        break
                    self.received.extend(data)
        except ConnectionError:
            pass
        finally:
            writer.close()

    async def close(self) -> None:
        for writer in self.writers:
            writer.close()
        if self.server is not None:
            self.server.close()
            await asyncio.wait_for(self.server.wait_closed(), timeout=2.0)


def unused_port() -> int:
    """A loopback port with nothing listening on it."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


async def wait_until(predicate: Callable[[], Any], timeout: float = 3.0) -> None:
    """Poll predicate until it is truthy or fail after timeout seconds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("Condition not met before timeout")
        await asyncio.sleep(0.005)


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def asyncio_loop() -> Generator[asyncio.AbstractEventLoop, None, None]:
    """A fresh asyncio loop that is never run."""
    loop = asyncio.new_event_loop()
    yield loop
    loop.close()


@pytest.fixture
def log_messages() -> Generator[List[str], None, None]:
    """Messages logged through loguru during the test."""
    messages: List[str] = []
    sink_id = logger.add(lambda message: messages.append(message.record["message"]), level="DEBUG")
    yield messages
    logger.remove(sink_id)
