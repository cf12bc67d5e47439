"""Tests for the session module."""

import asyncio
import io
import logging
from pathlib import Path
from typing import Any

import aiohttp
from aioresponses import CallbackResult, aioresponses
import pytest
from yarl import URL

from aiodavsession import Session
from aiodavsession.exceptions import (
    ConcurrentUnlockRaceError,
    DuplicateLockRegistrationError,
    LockConflictError,
    LockTokenMismatchError,
    NoConnectionError,
    OptionNotValidError,
    ResponseErrorCodeError,
)
from aiodavsession.locks import PermanentLock
from aiodavsession.models import (
    Depth,
    LockTimeout,
    LockToken,
    Prop,
    PropertyUpdate,
    PropFind,
)

from . import BASE_URL, load_responses, upload_stream

COL_URL = f"{BASE_URL}col/"
OTHER_URL = f"{BASE_URL}other/"
COL_TOKEN = "opaquelocktoken:e71d4fae-5dec-22d6-fea5-00a0c91e6be4"
OTHER_TOKEN = "opaquelocktoken:0a8e1f2c-3b4d-4e5f-8a9b-0c1d2e3f4a5b"


def add_lock_col(responses: aioresponses) -> None:
    """Mock the LOCK of the col collection."""
    responses.add(
        COL_URL,
        "LOCK",
        status=200,
        headers={"Lock-Token": f"<{COL_TOKEN}>"},
        body=load_responses("lock_col.xml"),
    )


def add_lock_other(responses: aioresponses) -> None:
    """Mock the LOCK of the other collection."""
    responses.add(
        OTHER_URL,
        "LOCK",
        status=200,
        headers={"Lock-Token": f"<{OTHER_TOKEN}>"},
        body=load_responses("lock_other_root.xml"),
    )


def test_session_invalid_options() -> None:
    """Test invalid session options."""
    with pytest.raises(OptionNotValidError):
        Session(BASE_URL, lock_timeout=0)
    with pytest.raises(OptionNotValidError):
        Session("/webdav/")


async def test_get_absolute_url(session: Session) -> None:
    """Test locators are resolved against the base URL."""
    assert session.get_absolute_url("col") == COL_URL
    assert session.get_absolute_url("/col/") == COL_URL
    assert session.get_absolute_url(COL_URL) == COL_URL
    assert session.get_absolute_url("col/file.txt") == f"{COL_URL}file.txt"


async def test_lock(session: Session, responses: aioresponses) -> None:
    """Test lock registers the lock and does not lock twice."""
    add_lock_col(responses)

    assert await session.lock("col")
    assert await session.lock("/col/")

    assert len(responses.requests[("LOCK", URL(COL_URL))]) == 1
    permanent_lock = session.locks.get(COL_URL)
    assert permanent_lock is not None
    assert permanent_lock.lock_token == LockToken(COL_TOKEN)
    assert permanent_lock.timeout == LockTimeout(3600)


async def test_lock_request(responses: aioresponses) -> None:
    """Test the LOCK request of a session with a lock timeout."""

    def callback(_url: str, **kwargs: Any) -> CallbackResult:
        assert kwargs["headers"]["Depth"] == "infinity"
        assert kwargs["headers"]["Timeout"] == "Second-3600"
        assert b"<lockscope><exclusive/></lockscope>" in kwargs["data"]
        assert b"<locktype><write/></locktype>" in kwargs["data"]
        return CallbackResult(
            status=200,
            headers={"Lock-Token": f"<{COL_TOKEN}>"},
            body=load_responses("lock_col.xml"),
        )

    responses.add(COL_URL, "LOCK", callback=callback)

    async with Session(BASE_URL, lock_timeout=3600) as session:
        assert await session.lock("col/")
        # keep the lock out of the teardown
        session.locks.try_remove(COL_URL)


async def test_lock_token_from_body(session: Session, responses: aioresponses) -> None:
    """Test the lock token is taken from the body without a Lock-Token header."""
    responses.add(
        f"{BASE_URL}report.txt",
        "LOCK",
        status=200,
        body=load_responses("lock_file.xml"),
    )

    assert await session.lock("report.txt")

    permanent_lock = session.locks.get(f"{BASE_URL}report.txt")
    assert permanent_lock is not None
    assert permanent_lock.lock_token == LockToken(
        "urn:uuid:f81d4fae-7dec-11d0-a765-00a0c91e6bf6"
    )


async def test_lock_refused(session: Session, responses: aioresponses) -> None:
    """Test a refused lock."""
    responses.add(COL_URL, "LOCK", status=412)

    assert not await session.lock("col/")
    assert len(session.locks) == 0


async def test_lock_conflict(session: Session, responses: aioresponses) -> None:
    """Test a lock on a resource locked by someone else."""
    responses.add(COL_URL, "LOCK", status=423)

    with pytest.raises(LockConflictError):
        await session.lock("col/")
    assert len(session.locks) == 0


async def test_lock_root_mismatch(session: Session, responses: aioresponses) -> None:
    """Test a lock response without a lock for the requested resource."""
    responses.add(
        COL_URL,
        "LOCK",
        status=200,
        headers={"Lock-Token": f"<{OTHER_TOKEN}>"},
        body=load_responses("lock_other_root.xml"),
    )

    with pytest.raises(LockTokenMismatchError):
        await session.lock("col/")
    assert len(session.locks) == 0


async def test_lock_duplicate_registration(
    session: Session, responses: aioresponses
) -> None:
    """Test a lock registered concurrently while the LOCK request runs."""

    def callback(_url: str, **_kwargs: Any) -> CallbackResult:
        session.locks.try_add(
            COL_URL, PermanentLock(session.client, LockToken("other"), COL_URL)
        )
        return CallbackResult(
            status=200,
            headers={"Lock-Token": f"<{COL_TOKEN}>"},
            body=load_responses("lock_col.xml"),
        )

    responses.add(COL_URL, "LOCK", callback=callback)

    with pytest.raises(DuplicateLockRegistrationError):
        await session.lock("col/")
    assert session.locks.get(COL_URL).lock_token == LockToken("other")


async def test_get_affected_lock_token(
    session: Session, responses: aioresponses
) -> None:
    """Test the lock token covering a locator."""
    add_lock_col(responses)
    await session.lock("col/")

    assert session.get_affected_lock_token("col") == LockToken(COL_TOKEN)
    assert session.get_affected_lock_token("col/sub/file.txt") == LockToken(COL_TOKEN)
    assert session.get_affected_lock_token("collection/file.txt") is None
    assert session.get_affected_lock_token("file.txt") is None


async def test_refresh_lock(session: Session, responses: aioresponses) -> None:
    """Test refresh of a held lock."""
    add_lock_col(responses)
    await session.lock("col/")

    def callback(_url: str, **kwargs: Any) -> CallbackResult:
        assert kwargs["headers"]["If"] == f"(<{COL_TOKEN}>)"
        assert kwargs["headers"]["Timeout"] == "Second-120"
        assert kwargs["data"] is None
        return CallbackResult(status=200)

    responses.add(COL_URL, "LOCK", callback=callback)

    assert await session.refresh_lock("col/", 120)
    assert not await session.refresh_lock("other/")
    assert COL_URL in session.locks


async def test_unlock(session: Session, responses: aioresponses) -> None:
    """Test unlock of a held lock."""
    add_lock_col(responses)
    await session.lock("col/")

    def callback(_url: str, **kwargs: Any) -> CallbackResult:
        assert kwargs["headers"]["Lock-Token"] == f"<{COL_TOKEN}>"
        return CallbackResult(status=204)

    responses.add(COL_URL, "UNLOCK", callback=callback)

    assert await session.unlock("col")
    assert COL_URL not in session.locks


async def test_unlock_not_locked(session: Session, responses: aioresponses) -> None:
    """Test unlock of a resource the session does not hold."""
    assert not await session.unlock("col/")
    assert ("UNLOCK", URL(COL_URL)) not in responses.requests


async def test_unlock_refused(session: Session, responses: aioresponses) -> None:
    """Test a refused unlock keeps the lock."""
    add_lock_col(responses)
    await session.lock("col/")
    responses.add(COL_URL, "UNLOCK", status=500)

    assert not await session.unlock("col/")
    assert session.locks.get(COL_URL).lock_token == LockToken(COL_TOKEN)


async def test_unlock_connection_error(
    session: Session, responses: aioresponses
) -> None:
    """Test a failed unlock request keeps the lock."""
    add_lock_col(responses)
    await session.lock("col/")
    responses.add(COL_URL, "UNLOCK", exception=aiohttp.ClientConnectionError())

    with pytest.raises(NoConnectionError):
        await session.unlock("col/")
    assert COL_URL in session.locks


async def test_unlock_cancelled(session: Session, responses: aioresponses) -> None:
    """Test a cancelled unlock keeps the lock."""
    add_lock_col(responses)
    await session.lock("col/")

    def callback(_url: str, **_kwargs: Any) -> CallbackResult:
        raise asyncio.CancelledError

    responses.add(COL_URL, "UNLOCK", callback=callback)

    with pytest.raises(asyncio.CancelledError):
        await session.unlock("col/")
    assert COL_URL in session.locks


async def test_unlock_race(session: Session, responses: aioresponses) -> None:
    """Test a refused unlock whose lock root was registered again meanwhile."""
    add_lock_col(responses)
    await session.lock("col/")

    def callback(_url: str, **_kwargs: Any) -> CallbackResult:
        session.locks.try_add(
            COL_URL, PermanentLock(session.client, LockToken("other"), COL_URL)
        )
        return CallbackResult(status=500)

    responses.add(COL_URL, "UNLOCK", callback=callback)

    with pytest.raises(ConcurrentUnlockRaceError):
        await session.unlock("col/")


async def test_locked_upload(session: Session, responses: aioresponses) -> None:
    """Test writes to a locked collection carry the lock token."""
    add_lock_col(responses)
    assert await session.lock("col/")

    responses.add(f"{COL_URL}file.txt", "PUT", status=423)
    with pytest.raises(LockConflictError):
        await session.client.put(f"{COL_URL}file.txt", b"data")

    def callback(_url: str, **kwargs: Any) -> CallbackResult:
        assert kwargs["headers"]["If"] == f"(<{COL_TOKEN}>)"
        assert kwargs["data"] == b"data"
        return CallbackResult(status=201)

    responses.add(f"{COL_URL}file.txt", "PUT", callback=callback)
    assert await session.upload("col/file.txt", b"data")

    responses.add(COL_URL, "UNLOCK", status=204)
    assert await session.unlock("col/")
    assert len(session.locks) == 0


async def test_upload_stream(session: Session, responses: aioresponses) -> None:
    """Test upload of an async iterable."""

    async def callback(_url: str, **kwargs: Any) -> CallbackResult:
        result = bytearray()
        async for chunk in kwargs["data"]:
            result += chunk
        assert result == b"Hello, world!"
        return CallbackResult(status=201)

    responses.add(f"{COL_URL}file.txt", "PUT", callback=callback)

    assert await session.upload("col/file.txt", upload_stream())


async def test_upload_without_lock(session: Session, responses: aioresponses) -> None:
    """Test writes outside of held locks carry no If header."""

    def callback(_url: str, **kwargs: Any) -> CallbackResult:
        assert "If" not in kwargs["headers"]
        return CallbackResult(status=204)

    responses.add(f"{BASE_URL}file.txt", "PUT", callback=callback)
    assert await session.upload("file.txt", "data")

    responses.add(f"{BASE_URL}file.txt", "PUT", status=507)
    assert not await session.upload("file.txt", "data")


async def test_copy(session: Session, responses: aioresponses) -> None:
    """Test copy into a locked collection."""
    add_lock_col(responses)
    await session.lock("col/")

    def callback(_url: str, **kwargs: Any) -> CallbackResult:
        assert kwargs["headers"]["Destination"] == f"{COL_URL}file.txt"
        assert kwargs["headers"]["Overwrite"] == "F"
        assert kwargs["headers"]["Depth"] == "infinity"
        assert kwargs["headers"]["If"] == f"(<{COL_TOKEN}>)"
        return CallbackResult(status=201)

    responses.add(f"{BASE_URL}file.txt", "COPY", callback=callback)

    assert await session.copy("file.txt", "col/file.txt")


async def test_copy_failed(session: Session, responses: aioresponses) -> None:
    """Test a copy refused by the server."""
    responses.add(f"{BASE_URL}file.txt", "COPY", status=412)

    assert not await session.copy("file.txt", "backup.txt")


async def test_move(session: Session, responses: aioresponses) -> None:
    """Test move between two locked collections."""
    add_lock_col(responses)
    add_lock_other(responses)
    await session.lock("col/")
    await session.lock("other/")

    def callback(_url: str, **kwargs: Any) -> CallbackResult:
        assert kwargs["headers"]["Destination"] == f"{OTHER_URL}b%20c.txt"
        assert kwargs["headers"]["Overwrite"] == "T"
        assert "Depth" not in kwargs["headers"]
        assert kwargs["headers"]["If"] == f"(<{COL_TOKEN}>) (<{OTHER_TOKEN}>)"
        return CallbackResult(status=204)

    responses.add(f"{COL_URL}a.txt", "MOVE", callback=callback)

    assert await session.move("col/a.txt", "other/b c.txt", overwrite=True)


async def test_delete(session: Session, responses: aioresponses) -> None:
    """Test delete."""
    responses.add(f"{BASE_URL}file.txt", "DELETE", status=204)
    responses.add(f"{BASE_URL}file.txt", "DELETE", status=404)

    assert await session.delete("file.txt")
    assert not await session.delete("file.txt")


async def test_create_directory(session: Session, responses: aioresponses) -> None:
    """Test create directory."""
    responses.add(f"{BASE_URL}new/", "MKCOL", status=201)
    responses.add(f"{BASE_URL}new/", "MKCOL", status=405)

    assert await session.create_directory("new")
    assert not await session.create_directory("new")


async def test_exists(session: Session, responses: aioresponses) -> None:
    """Test exists."""
    responses.add(f"{BASE_URL}file.txt", "HEAD", status=200)
    responses.add(f"{BASE_URL}file.txt", "HEAD", status=404)

    assert await session.exists("file.txt")
    assert not await session.exists("file.txt")


async def test_propfind(session: Session, responses: aioresponses) -> None:
    """Test propfind."""

    def callback(_url: str, **kwargs: Any) -> CallbackResult:
        assert kwargs["headers"]["Depth"] == "0"
        assert kwargs["data"] == PropFind.create_with_empty_properties(
            "displayname", "quota-available-bytes"
        ).to_xml()
        return CallbackResult(status=207, body=load_responses("propfind_collection.xml"))

    responses.add(COL_URL, "PROPFIND", callback=callback)

    multistatus = await session.propfind(
        "col/",
        PropFind.create_with_empty_properties("displayname", "quota-available-bytes"),
        Depth.ZERO,
    )
    assert multistatus.responses[0].prop().display_name == "col"


async def test_propfind_error(session: Session, responses: aioresponses) -> None:
    """Test propfind on a missing resource."""
    responses.add(f"{BASE_URL}missing/", "PROPFIND", status=404, body="Not Found")

    with pytest.raises(ResponseErrorCodeError) as err:
        await session.propfind("missing")
    assert err.value.code == 404
    assert err.value.message == "Not Found"


async def test_proppatch(session: Session, responses: aioresponses) -> None:
    """Test proppatch in a locked collection."""
    add_lock_col(responses)
    await session.lock("col/")

    prop = Prop()
    prop.display_name = "Report"

    def callback(_url: str, **kwargs: Any) -> CallbackResult:
        assert kwargs["headers"]["If"] == f"(<{COL_TOKEN}>)"
        assert kwargs["data"] == PropertyUpdate().set(prop).to_xml()
        return CallbackResult(status=207, body=load_responses("proppatch.xml"))

    responses.add(f"{COL_URL}file.txt", "PROPPATCH", callback=callback)

    multistatus = await session.proppatch("col/file.txt", PropertyUpdate().set(prop))
    [response] = multistatus.responses
    assert response.href == f"{COL_URL}file.txt"
    assert response.propstats[0].status_code == 200


async def test_upload_file(
    session: Session, responses: aioresponses, tmp_path: Path
) -> None:
    """Test upload of a local file."""
    local_path = tmp_path / "file.txt"
    local_path.write_bytes(b"Hello, world!")

    async def callback(_url: str, **kwargs: Any) -> CallbackResult:
        result = bytearray()
        async for chunk in kwargs["data"]:
            result += chunk
        assert result == b"Hello, world!"
        return CallbackResult(status=201)

    responses.add(f"{BASE_URL}file.txt", "PUT", callback=callback)

    assert await session.upload_file("file.txt", local_path)

    with pytest.raises(OptionNotValidError):
        await session.upload_file("file.txt", tmp_path / "missing.txt")


async def test_download_file(
    session: Session, responses: aioresponses, tmp_path: Path
) -> None:
    """Test download to a local file."""
    responses.add(f"{BASE_URL}file.txt", "GET", status=200, body=b"Hello, world!")
    local_path = tmp_path / "file.txt"

    assert await session.download_file("file.txt", local_path)
    assert local_path.read_bytes() == b"Hello, world!"

    with pytest.raises(OptionNotValidError):
        await session.download_file("file.txt", tmp_path)


async def test_download_to(session: Session, responses: aioresponses) -> None:
    """Test download to a buffer."""
    responses.add(f"{BASE_URL}file.txt", "GET", status=200, body=b"Hello, world!")
    responses.add(f"{BASE_URL}file.txt", "GET", status=404)
    buff = io.BytesIO()

    assert await session.download_to("file.txt", buff)
    assert buff.getvalue() == b"Hello, world!"
    assert not await session.download_to("file.txt", buff)


async def test_download_progress(
    session: Session, responses: aioresponses, tmp_path: Path
) -> None:
    """Test the progress callback of a download."""
    responses.add(
        f"{BASE_URL}file.txt",
        "GET",
        status=200,
        headers={"Content-Length": "13"},
        body=b"Hello, world!",
    )
    calls = []

    async def progress(current: int, total: int | None, name: str) -> None:
        calls.append((current, total, name))

    assert await session.download_file(
        "file.txt", tmp_path / "file.txt", progress, ("file.txt",)
    )
    assert calls[0] == (0, 13, "file.txt")
    assert calls[-1] == (13, 13, "file.txt")


async def test_close_releases_locks(
    responses: aioresponses, caplog: pytest.LogCaptureFixture
) -> None:
    """Test close unlocks every held lock and logs failures."""
    add_lock_col(responses)
    add_lock_other(responses)
    responses.add(COL_URL, "UNLOCK", status=204)
    responses.add(OTHER_URL, "UNLOCK", status=500)

    session = Session(BASE_URL, "user", "password")
    await session.lock("col/")
    await session.lock("other/")

    with caplog.at_level(logging.WARNING):
        await session.close()

    assert list(session.locks) == [OTHER_URL]
    assert f"Failed to unlock {OTHER_URL}" in caplog.text


async def test_close_after_connection_error(
    responses: aioresponses, caplog: pytest.LogCaptureFixture
) -> None:
    """Test close goes on when an unlock request fails."""
    add_lock_col(responses)
    add_lock_other(responses)
    responses.add(COL_URL, "UNLOCK", exception=aiohttp.ClientConnectionError())
    responses.add(OTHER_URL, "UNLOCK", status=204)

    async with Session(BASE_URL) as session:
        await session.lock("col/")
        await session.lock("other/")

    assert list(session.locks) == [COL_URL]
    assert f"Failed to unlock {COL_URL}" in caplog.text


async def test_close_twice(responses: aioresponses) -> None:
    """Test a second close does not unlock again."""
    add_lock_col(responses)
    responses.add(COL_URL, "UNLOCK", status=500)

    session = Session(BASE_URL)
    await session.lock("col/")
    await session.close()
    await session.close()

    assert session.closed
    assert list(session.locks) == [COL_URL]
    assert len(responses.requests[("UNLOCK", URL(COL_URL))]) == 1
