"""Exceptions for aiodavsession."""


class WebDavError(Exception):
    """Base class for all webdav exceptions."""


class OptionNotValidError(WebDavError):
    """Exception for not valid options."""

    def __init__(self, name: str, value: str | None, ns: str = "") -> None:
        """Exception for not valid options."""
        self.name = name
        self.value = value
        self.ns = ns

    def __str__(self) -> str:
        """Return string representation of exception."""
        return f"Option ({self.ns}{self.name}={self.value}) have invalid name or value"


class InvalidCombinationError(WebDavError):
    """Exception for locators that cannot be combined."""

    def __init__(self, first: str, second: str, reason: str) -> None:
        """Exception for locators that cannot be combined."""
        self.first = first
        self.second = second
        self.reason = reason

    def __str__(self) -> str:
        """Return string representation of exception."""
        return f"Cannot combine {self.first} and {self.second}: {self.reason}"


class MalformedResponseError(WebDavError):
    """Exception for response bodies that are not the expected XML."""

    def __init__(self, message: str) -> None:
        """Exception for response bodies that are not the expected XML."""
        self.message = message

    def __str__(self) -> str:
        """Return string representation of exception."""
        return f"Malformed response: {self.message}"


class TransportError(WebDavError):
    """Exception for errors of the HTTP layer."""

    def __init__(self, exception: BaseException) -> None:
        """Exception for errors of the HTTP layer."""
        self.exception = exception

    def __str__(self) -> str:
        """Return string representation of exception."""
        return self.exception.__str__()


class NoConnectionError(TransportError):
    """Exception for no connection."""

    def __init__(self, hostname: str, exception: BaseException) -> None:
        """Exception for no connection."""
        super().__init__(exception)
        self.hostname = hostname

    def __str__(self) -> str:
        """Return string representation of exception."""
        return f"No connection with {self.hostname}"


class UnauthorizedError(WebDavError):
    """Exception for unauthorized access."""

    def __init__(self, url: str) -> None:
        """Exception for unauthorized access."""
        self.url = url

    def __str__(self) -> str:
        """Return string representation of exception."""
        return f"Unauthorized access to {self.url}"


class ResponseErrorCodeError(WebDavError):
    """Exception for response error code."""

    def __init__(self, url: str, code: int, message: str) -> None:
        """Exception for response error code."""
        self.url = url
        self.code = code
        self.message = message

    def __str__(self) -> str:
        """Return string representation of exception."""
        return f"Request to {self.url} failed with code {self.code} and message: {self.message}"


class LockConflictError(WebDavError):
    """Exception for a resource locked by another principal."""

    def __init__(self, url: str) -> None:
        """Exception for a resource locked by another principal."""
        self.url = url

    def __str__(self) -> str:
        """Return string representation of exception."""
        return f"Resource {self.url} locked"


class LockTokenMismatchError(WebDavError):
    """Exception for a LOCK response without an active lock for the locator."""

    def __init__(self, url: str) -> None:
        """Exception for a LOCK response without an active lock for the locator."""
        self.url = url

    def __str__(self) -> str:
        """Return string representation of exception."""
        return f"No active lock for {self.url} in lock response"


class DuplicateLockRegistrationError(WebDavError):
    """Exception for registering a second lock with the same lock root."""

    def __init__(self, url: str) -> None:
        """Exception for registering a second lock with the same lock root."""
        self.url = url

    def __str__(self) -> str:
        """Return string representation of exception."""
        return f"Lock with lock root {self.url} already exists"


class ConcurrentUnlockRaceError(WebDavError):
    """Exception for a lock that could not be restored after a failed unlock."""

    def __init__(self, url: str) -> None:
        """Exception for a lock that could not be restored after a failed unlock."""
        self.url = url

    def __str__(self) -> str:
        """Return string representation of exception."""
        return f"Failed to unlock resource {self.url}"
