"""WebDAV session keeping track of the locks it holds."""

import asyncio
from collections.abc import AsyncIterable, Awaitable, Callable
import logging
from pathlib import Path
from typing import IO, Self

import aiofiles
import aiohttp

from .client import Client, ClientOptions, is_success, iter_content, read_response
from .exceptions import (
    ConcurrentUnlockRaceError,
    DuplicateLockRegistrationError,
    LockTokenMismatchError,
    OptionNotValidError,
    ResponseErrorCodeError,
)
from .locks import LockTable, PermanentLock
from .models import (
    ActiveLock,
    Depth,
    LockDiscovery,
    LockInfo,
    LockScope,
    LockTimeout,
    LockToken,
    LockType,
    Multistatus,
    PropertyUpdate,
    PropFind,
)
from .parser import WebDavXmlUtils
from .typing_helper import AsyncWriteBuffer
from .uri import add_trailing_slash, get_absolute_uri_with_trailing_slash, unquote_uri

log = logging.getLogger(__name__)


class Session:
    """A WebDAV session.

    Locators passed to the session may be relative to its base URL. Locks
    acquired with :meth:`lock` are remembered and their tokens are sent with
    every request touching the locked subtree. Closing the session releases
    all locks before the HTTP session is closed.
    """

    def __init__(
        self,
        url: str,
        username: str | None = None,
        password: str | None = None,
        *,
        options: ClientOptions | None = None,
        lock_timeout: int | None = None,
    ) -> None:
        """Construct a WebDAV session.

        :param url: absolute base URL of the session, e.g. `https://webdav.server.com/webdav/`.
        :param username: (optional) login name for the WebDAV server.
        :param password: (optional) password for the WebDAV server.
        :param options: (optional) the client options.
        :param lock_timeout: (optional) timeout of acquired locks in seconds. Defaults to infinite.
        """
        if lock_timeout is not None and lock_timeout <= 0:
            raise OptionNotValidError(name="lock_timeout", value=str(lock_timeout))

        self.client = Client(url, username, password, options=options)
        self.base_url = add_trailing_slash(url)
        self.lock_timeout = LockTimeout(lock_timeout)
        self.locks = LockTable()
        self.closed = False

    def get_absolute_url(self, url: str) -> str:
        """Resolve a locator against the base URL of the session."""
        return get_absolute_uri_with_trailing_slash(self.base_url, url)

    def get_affected_lock_token(self, url: str) -> LockToken | None:
        """Return the token of the held lock covering the locator.

        A lock covers its lock root and everything beneath it. If more than
        one held lock covers the locator, the first one found is returned.

        :param url: the locator about to be changed.
        :return: the lock token or None if no held lock covers the locator.
        """
        url = self.get_absolute_url(url)
        for lock_root, permanent_lock in self.locks.items():
            if url.startswith(lock_root):
                return permanent_lock.lock_token
        return None

    async def lock(self, url: str) -> bool:
        """Lock a resource with an exclusive write lock of infinite depth.

        Locking a resource already locked by this session succeeds without a
        request.

        More information you can find by link https://www.rfc-editor.org/rfc/rfc4918.html#section-9.10.

        :param url: the locator of the resource to lock.
        :return: True if the lock is held, False if the server refused it.
        """
        url = self.get_absolute_url(url)
        if url in self.locks:
            return True

        lock_info = LockInfo(lock_scope=LockScope.EXCLUSIVE, lock_type=LockType.WRITE)
        response = await self.client.lock(
            url, lock_info, timeout=self.lock_timeout, depth=Depth.INFINITY
        )
        content = await read_response(response)
        if not is_success(response):
            log.debug("Lock of %s refused with status %s", url, response.status)
            return False

        prop = WebDavXmlUtils.parse_prop(content)
        active_lock = self._find_active_lock(url, prop.lock_discovery)
        if active_lock is None:
            raise LockTokenMismatchError(url)

        lock_token = (
            LockToken.from_header(response.headers.get("Lock-Token"))
            or active_lock.lock_token
        )
        if lock_token is None:
            raise LockTokenMismatchError(url)

        permanent_lock = PermanentLock(
            self.client, lock_token, url, active_lock.timeout
        )
        if not self.locks.try_add(url, permanent_lock):
            raise DuplicateLockRegistrationError(url)
        return True

    @staticmethod
    def _find_active_lock(
        url: str, lock_discovery: LockDiscovery | None
    ) -> ActiveLock | None:
        """Return the active lock whose lock root matches the end of the locator."""
        if lock_discovery is None:
            return None

        for active_lock in lock_discovery.active_locks:
            if active_lock.lock_root is None:
                continue
            lock_root = add_trailing_slash(
                unquote_uri(active_lock.lock_root.href), expect_file=True
            )
            if url.lower().endswith(lock_root.lower()):
                return active_lock
        return None

    async def refresh_lock(self, url: str, timeout: int | None = None) -> bool:
        """Refresh a lock held by this session.

        :param url: the locator of the locked resource.
        :param timeout: (optional) the new timeout in seconds, the session default if omitted.
        :return: True if the server refreshed the lock, False if it failed or no lock is held.
        """
        url = self.get_absolute_url(url)
        permanent_lock = self.locks.get(url)
        if permanent_lock is None:
            return False

        response = await self.client.refresh_lock(
            url,
            permanent_lock.lock_token,
            LockTimeout(timeout) if timeout else self.lock_timeout,
        )
        response.release()
        return is_success(response)

    async def unlock(self, url: str) -> bool:
        """Unlock a resource locked by this session.

        More information you can find by link https://www.rfc-editor.org/rfc/rfc4918.html#section-9.11.

        :param url: the locator of the locked resource.
        :return: True if the lock was released, False if it is not held or the server refused.
        """
        url = self.get_absolute_url(url)
        permanent_lock = self.locks.try_remove(url)
        if permanent_lock is None:
            return False

        try:
            success = await permanent_lock.unlock()
        except (Exception, asyncio.CancelledError):
            self._restore_lock(url, permanent_lock)
            raise

        if not success:
            self._restore_lock(url, permanent_lock)
        return success

    def _restore_lock(self, url: str, permanent_lock: PermanentLock) -> None:
        """Put back a lock the server still holds."""
        if not self.locks.try_add(url, permanent_lock):
            raise ConcurrentUnlockRaceError(url)

    async def copy(
        self, source_url: str, destination_url: str, *, overwrite: bool = False
    ) -> bool:
        """Copy a resource with all its members.

        :param source_url: the locator of the resource which will be copied.
        :param destination_url: the locator the resource will be copied to.
        :param overwrite: (optional) overwrite an existing destination.
        :return: True if the server copied the resource.
        """
        source_url = self.get_absolute_url(source_url)
        destination_url = self.get_absolute_url(destination_url)
        response = await self.client.copy(
            source_url,
            destination_url,
            overwrite=overwrite,
            depth=Depth.INFINITY,
            lock_token=self.get_affected_lock_token(destination_url),
        )
        response.release()
        return is_success(response)

    async def move(
        self, source_url: str, destination_url: str, *, overwrite: bool = False
    ) -> bool:
        """Move a resource.

        :param source_url: the locator of the resource which will be moved.
        :param destination_url: the locator the resource will be moved to.
        :param overwrite: (optional) overwrite an existing destination.
        :return: True if the server moved the resource.
        """
        source_url = self.get_absolute_url(source_url)
        destination_url = self.get_absolute_url(destination_url)
        response = await self.client.move(
            source_url,
            destination_url,
            overwrite=overwrite,
            lock_token_source=self.get_affected_lock_token(source_url),
            lock_token_destination=self.get_affected_lock_token(destination_url),
        )
        response.release()
        return is_success(response)

    async def delete(self, url: str) -> bool:
        """Delete a resource."""
        url = self.get_absolute_url(url)
        response = await self.client.delete(url, self.get_affected_lock_token(url))
        response.release()
        return is_success(response)

    async def create_directory(self, url: str) -> bool:
        """Create a collection."""
        url = self.get_absolute_url(url)
        response = await self.client.mkcol(url, self.get_affected_lock_token(url))
        response.release()
        return is_success(response)

    async def exists(self, url: str) -> bool:
        """Check the existence of a resource."""
        url = self.get_absolute_url(url)
        response = await self.client.head(url)
        response.release()
        return is_success(response)

    async def propfind(
        self,
        url: str,
        propfind: PropFind | None = None,
        depth: Depth = Depth.ONE,
    ) -> Multistatus:
        """Retrieve properties of a resource and, depending on depth, its members.

        :param url: the locator of the resource.
        :param propfind: (optional) the request, all properties if omitted.
        :param depth: (optional) depth of the request. Defaults to 1.
        :return: the parsed multistatus.
        """
        url = self.get_absolute_url(url)
        response = await self.client.propfind(url, depth, propfind)
        return await self._parse_multistatus(url, response)

    async def proppatch(
        self, url: str, property_update: PropertyUpdate
    ) -> Multistatus:
        """Set and remove properties of a resource.

        :param url: the locator of the resource.
        :param property_update: the directives, applied in order by the server.
        :return: the parsed multistatus.
        """
        url = self.get_absolute_url(url)
        response = await self.client.proppatch(
            url, property_update, self.get_affected_lock_token(url)
        )
        return await self._parse_multistatus(url, response)

    @staticmethod
    async def _parse_multistatus(
        url: str, response: aiohttp.ClientResponse
    ) -> Multistatus:
        content = await read_response(response)
        if response.status not in (200, 207):
            raise ResponseErrorCodeError(
                url=url,
                code=response.status,
                message=content.decode(errors="replace"),
            )
        return WebDavXmlUtils.parse_multistatus(content)

    async def upload(self, url: str, data: bytes | AsyncIterable | IO | str) -> bool:
        """Upload data to a resource.

        More information you can find by link https://www.rfc-editor.org/rfc/rfc4918.html#section-9.7.

        :param url: the locator of the resource.
        :param data: the content of the resource.
        :return: True if the server stored the content.
        """
        url = self.get_absolute_url(url)
        response = await self.client.put(url, data, self.get_affected_lock_token(url))
        response.release()
        return is_success(response)

    async def upload_file(self, url: str, local_path: Path) -> bool:
        """Upload a local file to a resource."""
        if not local_path.is_file():
            raise OptionNotValidError(name="local_path", value=str(local_path))

        async def read_in_chunks() -> AsyncIterable[bytes]:
            async with aiofiles.open(local_path, "rb") as local_file:
                while data := await local_file.read(self.client.chunk_size):
                    yield data

        return await self.upload(url, read_in_chunks())

    async def download_to(
        self,
        url: str,
        buff: IO | AsyncWriteBuffer,
        progress: Callable[..., None | Awaitable[None]] | None = None,
        progress_args: tuple = (),
    ) -> bool:
        """Download a resource and write its content to a buffer.

        :param url: the locator of the resource.
        :param buff: buffer object for writing the content.
        :param progress: (optional) callback taking *(current, total)* and the
                progress_args, called before the first chunk and after each one.
                `total` is None if the server sent no Content-Length.
        :param progress_args: (optional) extra arguments for the progress callback.
        :return: True if the server sent the content.
        """
        url = self.get_absolute_url(url)
        response = await self.client.get(url)
        if not is_success(response):
            response.release()
            return False

        total = response.content_length
        current = 0
        if callable(progress):
            ret = progress(current, total, *progress_args)
            if asyncio.iscoroutine(ret):
                await ret

        async for chunk in iter_content(response, self.client.chunk_size):
            ret = buff.write(chunk)
            if asyncio.iscoroutine(ret):
                await ret
            current += len(chunk)
            if callable(progress):
                ret = progress(current, total, *progress_args)
                if asyncio.iscoroutine(ret):
                    await ret
        return True

    async def download_file(
        self,
        url: str,
        local_path: Path,
        progress: Callable[..., None | Awaitable[None]] | None = None,
        progress_args: tuple = (),
    ) -> bool:
        """Download a resource to a local file."""
        if local_path.is_dir():
            raise OptionNotValidError(name="local_path", value=str(local_path))

        async with aiofiles.open(local_path, "wb") as local_file:
            return await self.download_to(url, local_file, progress, progress_args)

    async def close(self) -> None:
        """Release all held locks, then close the connection to the WebDAV server.

        Failures to release a lock are logged and do not stop the teardown.
        Calling close again does nothing.
        """
        if self.closed:
            return
        self.closed = True
        try:
            for lock_root, permanent_lock in self.locks.items():
                try:
                    if await permanent_lock.unlock():
                        self.locks.try_remove(lock_root)
                    else:
                        log.warning(
                            "Failed to unlock %s while closing the session", lock_root
                        )
                except Exception:  # noqa: BLE001
                    log.warning(
                        "Failed to unlock %s while closing the session",
                        lock_root,
                        exc_info=True,
                    )
        finally:
            await self.client.close()

    async def __aenter__(self) -> Self:
        """Async enter."""
        return self

    async def __aexit__(self, *_exc_info: object) -> None:
        """Async exit."""
        await self.close()
