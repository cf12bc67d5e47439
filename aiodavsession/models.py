"""Models for the WebDAV XML request and response bodies.

Element names follow RFC 4918, all of them live in the ``DAV:`` namespace.
Request models serialize themselves with :meth:`to_xml`, response models are
built from parsed lxml elements with ``from_element``.
"""

from collections.abc import Iterable, Iterator
from copy import deepcopy
from dataclasses import dataclass, field
from enum import Enum, StrEnum

from lxml import etree

from .exceptions import MalformedResponseError

DAV_NS = "DAV:"
NSMAP: dict[str | None, str] = {None: DAV_NS}
PREFIXED_NSMAP: dict[str | None, str] = {"D": DAV_NS}


def dav(name: str) -> str:
    """Return the qualified tag of an element in the DAV: namespace."""
    return f"{{{DAV_NS}}}{name}"


def qualified_name(name: str, namespace: str | None) -> str:
    """Return the qualified tag of an element in the given namespace."""
    return f"{{{namespace}}}{name}" if namespace else name


def split_tag(tag: str) -> tuple[str, str]:
    """Split a qualified tag into namespace and local name."""
    qname = etree.QName(tag)
    return qname.namespace or "", qname.localname


def parse_status_code(status: str | None) -> int | None:
    """Return the code of an HTTP status line such as ``HTTP/1.1 200 OK``."""
    if not status:
        return None
    parts = status.split()
    if len(parts) < 2 or not parts[1].isdigit():
        return None
    return int(parts[1])


def _text(element: etree._Element | None) -> str | None:
    if element is None:
        return None
    return (element.text or "").strip()


def _to_xml(element: etree._Element) -> bytes:
    return etree.tostring(element, xml_declaration=True, encoding="UTF-8")


def _root_nsmap(*props: "Prop | None") -> dict[str | None, str]:
    # elements in no namespace cannot be written below a default DAV: namespace
    if any(prop.namespace == "" for p in props if p is not None for prop in p):
        return PREFIXED_NSMAP
    return NSMAP


class Depth(StrEnum):
    """Values of the Depth header and element."""

    ZERO = "0"
    ONE = "1"
    INFINITY = "infinity"


class LockScope(StrEnum):
    """Scope of a lock."""

    EXCLUSIVE = "exclusive"
    SHARED = "shared"

    def to_element(self, parent: etree._Element) -> etree._Element:
        """Append the lockscope element to parent."""
        element = etree.SubElement(parent, dav("lockscope"))
        etree.SubElement(element, dav(self.value))
        return element

    @classmethod
    def from_element(cls, element: etree._Element | None) -> "LockScope | None":
        """Return the scope named by the first child of a lockscope element."""
        if element is None or not len(element):
            return None
        _, name = split_tag(element[0].tag)
        try:
            return cls(name)
        except ValueError as err:
            raise MalformedResponseError(f"unknown lock scope {name}") from err


class LockType(StrEnum):
    """Type of a lock, RFC 4918 only defines write locks."""

    WRITE = "write"

    def to_element(self, parent: etree._Element) -> etree._Element:
        """Append the locktype element to parent."""
        element = etree.SubElement(parent, dav("locktype"))
        etree.SubElement(element, dav(self.value))
        return element

    @classmethod
    def from_element(cls, element: etree._Element | None) -> "LockType | None":
        """Return the type named by the first child of a locktype element."""
        if element is None or not len(element):
            return None
        _, name = split_tag(element[0].tag)
        try:
            return cls(name)
        except ValueError as err:
            raise MalformedResponseError(f"unknown lock type {name}") from err


@dataclass(frozen=True)
class LockTimeout:
    """Timeout of a lock, ``seconds`` is None for an infinite lock."""

    seconds: int | None = None

    @classmethod
    def infinite(cls) -> "LockTimeout":
        """Return an infinite timeout."""
        return cls()

    @property
    def is_infinite(self) -> bool:
        """Return True if the timeout is infinite."""
        return self.seconds is None

    @classmethod
    def parse(cls, value: str | None) -> "LockTimeout | None":
        """Parse a Timeout header or element value.

        Servers may send a list such as ``Infinite, Second-4100``, the first
        understood entry wins.
        """
        if not value:
            return None
        for entry in value.split(","):
            entry = entry.strip()  # noqa: PLW2901
            if entry.lower() == "infinite":
                return cls()
            prefix, _, seconds = entry.partition("-")
            if prefix.lower() == "second" and seconds.isdigit():
                return cls(int(seconds))
        return None

    def __str__(self) -> str:
        """Return the header value of the timeout."""
        return "Infinite" if self.seconds is None else f"Second-{self.seconds}"


@dataclass(frozen=True)
class LockToken:
    """Opaque lock token issued by the server."""

    href: str

    @classmethod
    def from_header(cls, value: str | None) -> "LockToken | None":
        """Return the token of a Lock-Token header (``<opaquelocktoken:...>``)."""
        if not value:
            return None
        token = value.strip().removeprefix("<").removesuffix(">").strip()
        return cls(token) if token else None

    @classmethod
    def from_element(cls, element: etree._Element | None) -> "LockToken | None":
        """Return the token of a locktoken element."""
        href = _text(element.find(dav("href"))) if element is not None else None
        return cls(href) if href else None

    @property
    def coded_url(self) -> str:
        """Return the token as used in the Lock-Token header."""
        return f"<{self.href}>"

    @property
    def if_header(self) -> str:
        """Return the token as a list of the If header."""
        return f"({self.coded_url})"

    def __str__(self) -> str:
        """Return the token."""
        return self.href


@dataclass(frozen=True)
class LockRoot:
    """The resource a lock actually applies to."""

    href: str

    @classmethod
    def from_element(cls, element: etree._Element | None) -> "LockRoot | None":
        """Return the lock root of a lockroot element."""
        href = _text(element.find(dav("href"))) if element is not None else None
        return cls(href) if href else None


@dataclass
class OwnerHref:
    """Owner of a lock, usually one href."""

    hrefs: list[str] = field(default_factory=list)
    text: str | None = None

    @classmethod
    def create(cls, owner: str) -> "OwnerHref":
        """Return an owner with a single href."""
        return cls(hrefs=[owner])

    def to_element(self, parent: etree._Element) -> etree._Element:
        """Append the owner element to parent."""
        element = etree.SubElement(parent, dav("owner"))
        for href in self.hrefs:
            etree.SubElement(element, dav("href")).text = href
        if self.text and not self.hrefs:
            element.text = self.text
        return element

    @classmethod
    def from_element(cls, element: etree._Element | None) -> "OwnerHref | None":
        """Return the owner of an owner element."""
        if element is None:
            return None
        hrefs = [_text(href) or "" for href in element.findall(dav("href"))]
        return cls(hrefs=hrefs, text=_text(element) or None)


@dataclass
class ActiveLock:
    """A lock as reported by the server in the lockdiscovery property."""

    lock_scope: LockScope | None = None
    lock_type: LockType | None = None
    depth: Depth | None = None
    owner: OwnerHref | None = None
    timeout: LockTimeout | None = None
    lock_token: LockToken | None = None
    lock_root: LockRoot | None = None

    @classmethod
    def from_element(cls, element: etree._Element) -> "ActiveLock":
        """Return the active lock of an activelock element."""
        depth = _text(element.find(dav("depth")))
        try:
            parsed_depth = Depth(depth.lower()) if depth else None
        except ValueError as err:
            raise MalformedResponseError(f"unknown depth {depth}") from err

        return cls(
            lock_scope=LockScope.from_element(element.find(dav("lockscope"))),
            lock_type=LockType.from_element(element.find(dav("locktype"))),
            depth=parsed_depth,
            owner=OwnerHref.from_element(element.find(dav("owner"))),
            timeout=LockTimeout.parse(_text(element.find(dav("timeout")))),
            lock_token=LockToken.from_element(element.find(dav("locktoken"))),
            lock_root=LockRoot.from_element(element.find(dav("lockroot"))),
        )


@dataclass
class LockDiscovery:
    """The lockdiscovery property."""

    active_locks: list[ActiveLock] = field(default_factory=list)

    @classmethod
    def from_element(cls, element: etree._Element) -> "LockDiscovery":
        """Return the active locks of a lockdiscovery element."""
        return cls(
            active_locks=[
                ActiveLock.from_element(active_lock)
                for active_lock in element.findall(dav("activelock"))
            ]
        )


@dataclass
class Property:
    """A single WebDAV property.

    ``element`` holds the XML the property was parsed from, it is written back
    unchanged so unknown vendor properties survive a round trip.
    """

    name: str
    value: str | None = None
    namespace: str = DAV_NS
    element: etree._Element | None = field(default=None, compare=False, repr=False)

    @property
    def key(self) -> tuple[str, str]:
        """Return the (namespace, name) key of the property."""
        return self.namespace, self.name

    def to_element(self, parent: etree._Element) -> etree._Element:
        """Append the property element to parent."""
        if self.element is not None:
            element = deepcopy(self.element)
            parent.append(element)
            return element

        nsmap = {None: self.namespace} if self.namespace not in ("", DAV_NS) else None
        element = etree.SubElement(
            parent, qualified_name(self.name, self.namespace), nsmap=nsmap
        )
        if self.value:
            element.text = self.value
        return element

    @classmethod
    def from_element(cls, element: etree._Element) -> "Property":
        """Return the property of a child element of prop."""
        namespace, name = split_tag(element.tag)
        return cls(
            name=name, value=element.text or "", namespace=namespace, element=element
        )


class Prop:
    """Properties of a resource keyed by namespace and name."""

    def __init__(self, properties: Iterable[Property] = ()) -> None:
        """Properties of a resource keyed by namespace and name."""
        self._properties: dict[tuple[str, str], Property] = {}
        for prop in properties:
            self.add(prop)

    @classmethod
    def create_with_empty_properties(
        cls, *names: str, namespace: str = DAV_NS
    ) -> "Prop":
        """Return properties with the given names and no values."""
        return cls(Property(name=name, namespace=namespace) for name in names)

    def add(self, prop: Property) -> None:
        """Add a property, replacing one with the same key."""
        self._properties[prop.key] = prop

    def set(self, name: str, value: str | None, namespace: str = DAV_NS) -> None:
        """Set the value of a property."""
        self.add(Property(name=name, value=value, namespace=namespace))

    def get(self, name: str, namespace: str = DAV_NS) -> Property | None:
        """Return the property or None if it is missing."""
        return self._properties.get((namespace, name))

    def value(self, name: str, namespace: str = DAV_NS) -> str | None:
        """Return the value of a property or None if it is missing."""
        prop = self.get(name, namespace)
        return prop.value if prop else None

    def __contains__(self, key: object) -> bool:
        """Return True if the (namespace, name) key is present."""
        return key in self._properties

    def __iter__(self) -> Iterator[Property]:
        """Iterate over the properties in document order."""
        return iter(self._properties.values())

    def __len__(self) -> int:
        """Return the number of properties."""
        return len(self._properties)

    def __eq__(self, other: object) -> bool:
        """Compare the properties."""
        if not isinstance(other, Prop):
            return NotImplemented
        return list(self) == list(other)

    def __repr__(self) -> str:
        """Return the representation of the properties."""
        return f"Prop({list(self)!r})"

    def _int_value(self, name: str) -> int | None:
        value = self.value(name)
        if value is None or not value.strip().isdigit():
            return None
        return int(value.strip())

    @property
    def display_name(self) -> str | None:
        """Return the display name."""
        return self.value("displayname")

    @display_name.setter
    def display_name(self, value: str | None) -> None:
        self.set("displayname", value)

    @property
    def content_length(self) -> int | None:
        """Return the content length in bytes."""
        return self._int_value("getcontentlength")

    @property
    def content_type(self) -> str | None:
        """Return the content type."""
        return self.value("getcontenttype")

    @property
    def content_language(self) -> str | None:
        """Return the content language."""
        return self.value("getcontentlanguage")

    @property
    def etag(self) -> str | None:
        """Return the entity tag."""
        return self.value("getetag")

    @property
    def last_modified(self) -> str | None:
        """Return the last modification date as sent by the server."""
        return self.value("getlastmodified")

    @property
    def creation_date(self) -> str | None:
        """Return the creation date as sent by the server."""
        return self.value("creationdate")

    @property
    def quota_available_bytes(self) -> int | None:
        """Return the available quota in bytes (RFC 4331)."""
        return self._int_value("quota-available-bytes")

    @property
    def quota_used_bytes(self) -> int | None:
        """Return the used quota in bytes (RFC 4331)."""
        return self._int_value("quota-used-bytes")

    @property
    def is_collection(self) -> bool:
        """Return True if the resourcetype marks a collection."""
        prop = self.get("resourcetype")
        if prop is None or prop.element is None:
            return False
        return prop.element.find(dav("collection")) is not None

    @property
    def lock_discovery(self) -> LockDiscovery | None:
        """Return the lockdiscovery property."""
        prop = self.get("lockdiscovery")
        if prop is None or prop.element is None:
            return None
        return LockDiscovery.from_element(prop.element)

    @property
    def supported_lock(self) -> list[tuple[LockScope | None, LockType | None]]:
        """Return the (scope, type) pairs of the supportedlock property."""
        prop = self.get("supportedlock")
        if prop is None or prop.element is None:
            return []
        return [
            (
                LockScope.from_element(entry.find(dav("lockscope"))),
                LockType.from_element(entry.find(dav("locktype"))),
            )
            for entry in prop.element.findall(dav("lockentry"))
        ]

    def to_element(self, parent: etree._Element | None = None) -> etree._Element:
        """Return the prop element, appended to parent if given."""
        if parent is None:
            element = etree.Element(dav("prop"), nsmap=_root_nsmap(self))
        else:
            element = etree.SubElement(parent, dav("prop"))
        for prop in self:
            prop.to_element(element)
        return element

    @classmethod
    def from_element(cls, element: etree._Element | None) -> "Prop":
        """Return the properties of a prop element."""
        if element is None:
            return cls()
        return cls(
            Property.from_element(child)
            for child in element
            if isinstance(child.tag, str)
        )


class PropFindMode(Enum):
    """Request shapes of a PROPFIND body."""

    ALL_PROP = "allprop"
    NAMED_PROPERTIES = "prop"
    PROP_NAME = "propname"


@dataclass
class PropFind:
    """Body of a PROPFIND request."""

    mode: PropFindMode = PropFindMode.ALL_PROP
    prop: Prop | None = None

    @classmethod
    def create_all_prop(cls) -> "PropFind":
        """Request all properties with their values."""
        return cls(mode=PropFindMode.ALL_PROP)

    @classmethod
    def create_with_empty_properties(
        cls, *names: str, namespace: str = DAV_NS
    ) -> "PropFind":
        """Request the named properties with their values."""
        return cls(
            mode=PropFindMode.NAMED_PROPERTIES,
            prop=Prop.create_with_empty_properties(*names, namespace=namespace),
        )

    @classmethod
    def create_prop_name(cls) -> "PropFind":
        """Request the names of all properties without values."""
        return cls(mode=PropFindMode.PROP_NAME)

    def to_element(self) -> etree._Element:
        """Return the propfind element."""
        root = etree.Element(dav("propfind"), nsmap=_root_nsmap(self.prop))
        if self.mode is PropFindMode.NAMED_PROPERTIES:
            (self.prop or Prop()).to_element(root)
        else:
            etree.SubElement(root, dav(self.mode.value))
        return root

    def to_xml(self) -> bytes:
        """Return the serialized propfind body."""
        return _to_xml(self.to_element())


@dataclass
class Set:
    """Directive to set the given properties."""

    prop: Prop = field(default_factory=Prop)

    tag = "set"


@dataclass
class Remove:
    """Directive to remove the given properties."""

    prop: Prop = field(default_factory=Prop)

    tag = "remove"


@dataclass
class PropertyUpdate:
    """Body of a PROPPATCH request, directives are applied in order."""

    items: list[Set | Remove] = field(default_factory=list)

    def set(self, prop: Prop) -> "PropertyUpdate":
        """Append a set directive."""
        self.items.append(Set(prop))
        return self

    def remove(self, prop: Prop) -> "PropertyUpdate":
        """Append a remove directive."""
        self.items.append(Remove(prop))
        return self

    def to_element(self) -> etree._Element:
        """Return the propertyupdate element."""
        nsmap = _root_nsmap(*(item.prop for item in self.items))
        root = etree.Element(dav("propertyupdate"), nsmap=nsmap)
        for item in self.items:
            item.prop.to_element(etree.SubElement(root, dav(item.tag)))
        return root

    def to_xml(self) -> bytes:
        """Return the serialized propertyupdate body."""
        return _to_xml(self.to_element())


@dataclass
class LockInfo:
    """Body of a LOCK request."""

    lock_scope: LockScope = LockScope.EXCLUSIVE
    lock_type: LockType = LockType.WRITE
    owner: OwnerHref | None = None

    def to_element(self) -> etree._Element:
        """Return the lockinfo element."""
        root = etree.Element(dav("lockinfo"), nsmap=NSMAP)
        self.lock_scope.to_element(root)
        self.lock_type.to_element(root)
        if self.owner is not None:
            self.owner.to_element(root)
        return root

    def to_xml(self) -> bytes:
        """Return the serialized lockinfo body."""
        return _to_xml(self.to_element())


@dataclass
class Propstat:
    """Properties of a resource sharing one status."""

    prop: Prop
    status: str
    response_description: str | None = None

    @property
    def status_code(self) -> int | None:
        """Return the HTTP status code."""
        return parse_status_code(self.status)

    @classmethod
    def from_element(cls, element: etree._Element) -> "Propstat":
        """Return the propstat of a propstat element."""
        status = _text(element.find(dav("status")))
        if status is None:
            raise MalformedResponseError("propstat without status")
        return cls(
            prop=Prop.from_element(element.find(dav("prop"))),
            status=status,
            response_description=_text(element.find(dav("responsedescription"))),
        )


@dataclass
class ResponseStatus:
    """Result of a response applying to the whole resource."""

    status: str
    hrefs: list[str] = field(default_factory=list)


@dataclass
class PropstatList:
    """Result of a response made of one or more propstat entries."""

    propstats: list[Propstat]


@dataclass
class Response:
    """Result for a single resource of a multistatus."""

    href: str
    result: ResponseStatus | PropstatList
    response_description: str | None = None
    # qualified tags of the precondition/postcondition codes of an error element
    error: list[str] = field(default_factory=list)

    @property
    def status_code(self) -> int | None:
        """Return the status code of a whole-resource result."""
        if isinstance(self.result, ResponseStatus):
            return parse_status_code(self.result.status)
        return None

    @property
    def propstats(self) -> list[Propstat]:
        """Return the propstat entries, empty for a whole-resource result."""
        if isinstance(self.result, PropstatList):
            return self.result.propstats
        return []

    def prop(self, status_code: int = 200) -> Prop:
        """Return the properties reported with the given status code."""
        merged = Prop()
        for propstat in self.propstats:
            if propstat.status_code == status_code:
                for prop in propstat.prop:
                    merged.add(prop)
        return merged

    @classmethod
    def from_element(cls, element: etree._Element) -> "Response":
        """Return the response of a response element."""
        hrefs = [_text(href) or "" for href in element.findall(dav("href"))]
        if not hrefs:
            raise MalformedResponseError("response without href")

        status = _text(element.find(dav("status")))
        propstats = [
            Propstat.from_element(propstat)
            for propstat in element.findall(dav("propstat"))
        ]
        if status is not None and propstats:
            raise MalformedResponseError(f"response {hrefs[0]} mixes status and propstat")
        if status is None and not propstats:
            raise MalformedResponseError(f"response {hrefs[0]} without status or propstat")
        if propstats and len(hrefs) > 1:
            raise MalformedResponseError(f"response {hrefs[0]} mixes hrefs and propstat")

        result: ResponseStatus | PropstatList
        if status is not None:
            result = ResponseStatus(status=status, hrefs=hrefs[1:])
        else:
            result = PropstatList(propstats=propstats)

        error = element.find(dav("error"))
        conditions = [] if error is None else list(error)
        return cls(
            href=hrefs[0],
            result=result,
            response_description=_text(element.find(dav("responsedescription"))),
            error=[
                condition.tag for condition in conditions if isinstance(condition.tag, str)
            ],
        )


@dataclass
class Multistatus:
    """Body of a 207 Multi-Status response."""

    responses: list[Response] = field(default_factory=list)
    response_description: str | None = None

    @classmethod
    def from_element(cls, element: etree._Element) -> "Multistatus":
        """Return the multistatus of a multistatus element."""
        return cls(
            responses=[
                Response.from_element(response)
                for response in element.findall(dav("response"))
            ],
            response_description=_text(element.find(dav("responsedescription"))),
        )
