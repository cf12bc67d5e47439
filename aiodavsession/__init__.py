"""Asynchronous WebDAV client with session-level lock management."""

from .client import Client, ClientOptions
from .models import (
    ActiveLock,
    Depth,
    LockInfo,
    LockScope,
    LockTimeout,
    LockToken,
    LockType,
    Multistatus,
    OwnerHref,
    Prop,
    Property,
    PropertyUpdate,
    PropFind,
    Propstat,
    PropstatList,
    Remove,
    Response,
    ResponseStatus,
    Set,
)
from .session import Session

__all__ = [
    "ActiveLock",
    "Client",
    "ClientOptions",
    "Depth",
    "LockInfo",
    "LockScope",
    "LockTimeout",
    "LockToken",
    "LockType",
    "Multistatus",
    "OwnerHref",
    "Prop",
    "PropFind",
    "Property",
    "PropertyUpdate",
    "Propstat",
    "PropstatList",
    "Remove",
    "Response",
    "ResponseStatus",
    "Session",
    "Set",
]
