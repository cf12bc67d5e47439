"""Fixtures for aiodavsession tests."""

from collections.abc import AsyncGenerator, Generator

import aiohttp
from aioresponses import aioresponses
import pytest

from aiodavsession import Client, ClientOptions, Session

from . import BASE_URL


@pytest.fixture(name="responses")
def aioresponses_fixture() -> Generator[aioresponses, None, None]:
    """Return aioresponses fixture."""
    with aioresponses() as mocked_responses:
        yield mocked_responses


@pytest.fixture(name="client")
async def client() -> AsyncGenerator[Client, None]:
    """Return a aiodavsession client."""
    async with (
        aiohttp.ClientSession() as session,
        Client(
            url=BASE_URL,
            username="user",
            password="password",
            options=ClientOptions(session=session),
        ) as c,
    ):
        yield c


@pytest.fixture(name="session")
async def session() -> AsyncGenerator[Session, None]:
    """Return a aiodavsession session without locks released on teardown."""
    s = Session(BASE_URL, "user", "password")
    yield s
    await s.client.close()
