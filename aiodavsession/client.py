"""WebDAV client implementation."""

import asyncio
from collections.abc import AsyncIterable, Callable
from dataclasses import dataclass
import functools
import logging
from ssl import SSLContext
from typing import IO, Self

import aiohttp
from aiohttp import ClientSession

from .exceptions import (
    LockConflictError,
    NoConnectionError,
    OptionNotValidError,
    TransportError,
    UnauthorizedError,
)
from .models import Depth, LockInfo, LockTimeout, LockToken, PropertyUpdate, PropFind
from .uri import is_absolute, quote_uri

log = logging.getLogger(__name__)

XML_CONTENT_TYPE = 'application/xml; charset="utf-8"'


def wrap_connection_error(fn: Callable) -> Callable:
    """Decorate function to handle aiohttp errors."""

    @functools.wraps(fn)
    async def _wrapper(self, *args, **kw):  # noqa: ANN003 ANN002 ANN001 ANN202
        log.debug("Requesting %s(%s, %s)", fn.__name__, args, kw)
        try:
            return await fn(self, *args, **kw)
        except aiohttp.ClientConnectionError as err:
            raise NoConnectionError(self.url, err) from err
        except (aiohttp.ClientError, asyncio.TimeoutError) as err:
            raise TransportError(err) from err

    return _wrapper


def if_header(*lock_tokens: LockToken | None) -> dict[str, str]:
    """Return the If header for the given lock tokens, empty if there are none."""
    tokens = [token.if_header for token in lock_tokens if token is not None]
    if not tokens:
        return {}
    return {"If": " ".join(tokens)}


@dataclass(frozen=True, kw_only=True)
class ClientOptions:
    """Options for the WebDAV client.

    `session`: (optional) aiohttp session, it is not closed by the client.
    `timeout`: (optional) timeout of a request in seconds. Defaults to 30 seconds.
    `ssl`: (optional) False to skip certificate validation or an SSL context.
    `proxy`: (optional) URL of the proxy to use.
    `proxy_auth`: (optional) credentials for the proxy.
    `token`: (optional) bearer token, used instead of login/password.
    `chunk_size`: (optional) size of the chunks read from downloads.
    """

    session: ClientSession | None = None
    timeout: int = 30
    ssl: bool | SSLContext = True
    proxy: str | None = None
    proxy_auth: aiohttp.BasicAuth | None = None
    token: str | None = None
    chunk_size: int = 65536


class Client:
    """The client for WebDAV servers sends the WebDAV methods to a server.

    The client does not keep any state besides its HTTP session, every verb
    returns the raw response and leaves its interpretation to the caller.
    """

    _close_session: bool = False

    def __init__(
        self,
        url: str,
        username: str | None = None,
        password: str | None = None,
        *,
        options: ClientOptions | None = None,
    ) -> None:
        """Construct a WebDAV client.

        :param url: absolute URL of the WebDAV root, e.g. `https://webdav.server.com/webdav/`.
        :param username: (optional) login name for the WebDAV server.
        :param password: (optional) password for the WebDAV server.
        :param options: (optional) the client options.
        """
        if not is_absolute(url):
            raise OptionNotValidError(name="url", value=url)

        self.url = url
        self._options = options or ClientOptions()
        self._session = self._options.session or aiohttp.ClientSession()
        self._close_session = self._options.session is None
        self._auth = (
            aiohttp.BasicAuth(username, password)
            if username and password and not self._options.token
            else None
        )
        self.timeout = aiohttp.ClientTimeout(total=self._options.timeout)
        self.chunk_size = self._options.chunk_size

    def get_headers(self, headers_ext: dict[str, str] | None = None) -> dict[str, str]:
        """Return HTTP headers of a request.

        :param headers_ext: (optional) the headers added to the basic headers.
        :return: the dictionary of headers.
        """
        headers = {"Accept": "*/*"}
        if headers_ext:
            headers.update(headers_ext)
        if self._options.token:
            headers["Authorization"] = f"Bearer {self._options.token}"
        return headers

    async def execute_request(
        self,
        method: str,
        url: str,
        headers: dict[str, str] | None = None,
        data: bytes | AsyncIterable | IO | str | None = None,
    ) -> aiohttp.ClientResponse:
        """Execute a request against the WebDAV server.

        :param method: the HTTP method.
        :param url: the absolute URL of the resource.
        :param headers: (optional) headers added to the basic headers.
        :param data: (optional) the body of the request.
        :return: HTTP response of request.
        """
        log.debug("%s %s", method, url)
        response = await self._session.request(
            method=method,
            url=url,
            auth=self._auth,
            headers=self.get_headers(headers),
            timeout=self.timeout,
            ssl=self._options.ssl,
            data=data,
            proxy=self._options.proxy,
            proxy_auth=self._options.proxy_auth,
        )
        if response.status == 401:
            response.release()
            raise UnauthorizedError(url)
        if response.status == 423:
            response.release()
            raise LockConflictError(url)
        return response

    @wrap_connection_error
    async def options(self, url: str) -> aiohttp.ClientResponse:
        """Send an OPTIONS request."""
        return await self.execute_request("OPTIONS", url)

    @wrap_connection_error
    async def propfind(
        self,
        url: str,
        depth: Depth = Depth.ONE,
        propfind: PropFind | None = None,
    ) -> aiohttp.ClientResponse:
        """Retrieve properties of a resource.

        More information you can find by link https://www.rfc-editor.org/rfc/rfc4918.html#section-9.1.

        :param url: the URL of the resource.
        :param depth: (optional) depth of the request. Defaults to 1.
        :param propfind: (optional) the request body, all properties if omitted.
        """
        return await self.execute_request(
            "PROPFIND",
            url,
            headers={"Depth": str(depth), "Content-Type": XML_CONTENT_TYPE},
            data=(propfind or PropFind.create_all_prop()).to_xml(),
        )

    @wrap_connection_error
    async def proppatch(
        self,
        url: str,
        property_update: PropertyUpdate,
        lock_token: LockToken | None = None,
    ) -> aiohttp.ClientResponse:
        """Set and remove properties of a resource.

        More information you can find by link https://www.rfc-editor.org/rfc/rfc4918.html#section-9.2.
        """
        headers = {"Content-Type": XML_CONTENT_TYPE, **if_header(lock_token)}
        return await self.execute_request(
            "PROPPATCH", url, headers=headers, data=property_update.to_xml()
        )

    @wrap_connection_error
    async def mkcol(
        self, url: str, lock_token: LockToken | None = None
    ) -> aiohttp.ClientResponse:
        """Create a collection.

        More information you can find by link https://www.rfc-editor.org/rfc/rfc4918.html#section-9.3.
        """
        return await self.execute_request("MKCOL", url, headers=if_header(lock_token))

    @wrap_connection_error
    async def get(self, url: str) -> aiohttp.ClientResponse:
        """Retrieve the content of a resource."""
        return await self.execute_request("GET", url)

    @wrap_connection_error
    async def head(self, url: str) -> aiohttp.ClientResponse:
        """Retrieve the headers of a resource."""
        return await self.execute_request("HEAD", url)

    @wrap_connection_error
    async def put(
        self,
        url: str,
        data: bytes | AsyncIterable | IO | str,
        lock_token: LockToken | None = None,
    ) -> aiohttp.ClientResponse:
        """Store content at the URL."""
        return await self.execute_request(
            "PUT", url, headers=if_header(lock_token), data=data
        )

    @wrap_connection_error
    async def delete(
        self, url: str, lock_token: LockToken | None = None
    ) -> aiohttp.ClientResponse:
        """Delete a resource.

        More information you can find by link https://www.rfc-editor.org/rfc/rfc4918.html#section-9.6.
        """
        return await self.execute_request("DELETE", url, headers=if_header(lock_token))

    @wrap_connection_error
    async def copy(
        self,
        source_url: str,
        destination_url: str,
        *,
        overwrite: bool = False,
        depth: Depth = Depth.INFINITY,
        lock_token: LockToken | None = None,
    ) -> aiohttp.ClientResponse:
        """Copy a resource.

        More information you can find by link https://www.rfc-editor.org/rfc/rfc4918.html#section-9.8.

        :param source_url: the URL of the resource which will be copied.
        :param destination_url: the URL where the resource will be copied to.
        :param overwrite: (optional) overwrite an existing destination.
        :param depth: (optional) 0 copies a collection without its members.
        :param lock_token: (optional) the lock token of the destination.
        """
        headers = {
            "Destination": quote_uri(destination_url),
            "Overwrite": "T" if overwrite else "F",
            "Depth": str(depth),
            **if_header(lock_token),
        }
        return await self.execute_request("COPY", source_url, headers=headers)

    @wrap_connection_error
    async def move(
        self,
        source_url: str,
        destination_url: str,
        *,
        overwrite: bool = False,
        lock_token_source: LockToken | None = None,
        lock_token_destination: LockToken | None = None,
    ) -> aiohttp.ClientResponse:
        """Move a resource.

        More information you can find by link https://www.rfc-editor.org/rfc/rfc4918.html#section-9.9.
        """
        headers = {
            "Destination": quote_uri(destination_url),
            "Overwrite": "T" if overwrite else "F",
            **if_header(lock_token_source, lock_token_destination),
        }
        return await self.execute_request("MOVE", source_url, headers=headers)

    @wrap_connection_error
    async def lock(
        self,
        url: str,
        lock_info: LockInfo,
        timeout: LockTimeout | None = None,
        depth: Depth = Depth.INFINITY,
    ) -> aiohttp.ClientResponse:
        """Lock a resource.

        More information you can find by link https://www.rfc-editor.org/rfc/rfc4918.html#section-9.10.

        :param url: the URL of the resource to lock.
        :param lock_info: the requested lock.
        :param timeout: (optional) the requested timeout. Defaults to infinite.
        :param depth: (optional) 0 or infinity. Defaults to infinity.
        """
        headers = {
            "Depth": str(depth),
            "Timeout": str(timeout or LockTimeout.infinite()),
            "Content-Type": XML_CONTENT_TYPE,
        }
        return await self.execute_request(
            "LOCK", url, headers=headers, data=lock_info.to_xml()
        )

    @wrap_connection_error
    async def refresh_lock(
        self, url: str, lock_token: LockToken, timeout: LockTimeout | None = None
    ) -> aiohttp.ClientResponse:
        """Refresh a lock, the request carries the lock token and no body."""
        headers = {
            "Timeout": str(timeout or LockTimeout.infinite()),
            **if_header(lock_token),
        }
        return await self.execute_request("LOCK", url, headers=headers)

    @wrap_connection_error
    async def unlock(self, url: str, lock_token: LockToken) -> aiohttp.ClientResponse:
        """Unlock a resource.

        More information you can find by link https://www.rfc-editor.org/rfc/rfc4918.html#section-9.11.
        """
        return await self.execute_request(
            "UNLOCK", url, headers={"Lock-Token": lock_token.coded_url}
        )

    async def close(self) -> None:
        """Close the connection to WebDAV server."""
        if self._close_session:
            await self._session.close()

    async def __aenter__(self) -> Self:
        """Async enter."""
        return self

    async def __aexit__(self, *_exc_info: object) -> None:
        """Async exit."""
        await self.close()


def is_success(response: aiohttp.ClientResponse) -> bool:
    """Return True for a 2xx status."""
    return 200 <= response.status < 300


async def read_response(response: aiohttp.ClientResponse) -> bytes:
    """Read the body of a response and release the connection."""
    async with response:
        return await response.read()


async def iter_content(
    response: aiohttp.ClientResponse, chunk_size: int
) -> AsyncIterable[bytes]:
    """Async generator to iterate over response content by chunks."""
    async with response:
        while chunk := await response.content.read(chunk_size):
            yield chunk

