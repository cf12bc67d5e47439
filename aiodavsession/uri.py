"""URI helpers for aiodavsession.

Locators are plain strings. Helpers never mutate their input and do no I/O.
"""

from urllib.parse import quote, unquote, urlsplit, urlunsplit

from .exceptions import InvalidCombinationError

separate = "/"

DEFAULT_PORTS = {"http": 80, "https": 443}


def is_absolute(url: str) -> bool:
    """Return True if the locator carries a scheme and a host."""
    parts = urlsplit(url)
    return bool(parts.scheme and parts.netloc)


def _segments(path: str) -> list[str]:
    return [segment for segment in path.split(separate) if segment]


def _split_netloc(netloc: str) -> tuple[str, str, str | None]:
    """Split a netloc into userinfo prefix, host and port."""
    userinfo, at, hostport = netloc.rpartition("@")
    if hostport.startswith("["):
        # IPv6 literal
        end = hostport.find("]") + 1
        host, rest = hostport[:end], hostport[end:]
        port = rest[1:] if rest.startswith(":") else None
    else:
        host, _, port = hostport.partition(":")
    return f"{userinfo}{at}", host, port or None


def add_trailing_slash(url: str, expect_file: bool = False) -> str:  # noqa: FBT001 FBT002
    """Add a trailing slash to a locator (only if needed).

    Duplicate slashes are collapsed, a leading slash and the double slash
    after the scheme are kept.

    :param url: the locator to add the trailing slash to.
    :param expect_file: True if a last segment containing a dot denotes a file,
                        in which case no trailing slash is added.
    :return: the locator with a trailing slash (only if needed).
    """
    segments = _segments(url)
    if not segments:
        return separate

    leading_slash = url.startswith(separate)
    rebuilt = ""
    for index, segment in enumerate(segments):
        rebuilt += segment
        if index == 0 and ":" in segment and not leading_slash:
            rebuilt += "//"
        elif index != len(segments) - 1:
            rebuilt += separate

    if leading_slash:
        rebuilt = f"{separate}{rebuilt}"

    if expect_file and "." in segments[-1]:
        return rebuilt
    return f"{rebuilt}{separate}"


def combine_uri(
    first: str | None,
    second: str,
    remove_duplicate_path: bool = False,  # noqa: FBT001 FBT002
) -> str:
    """Combine two locators.

    When ``remove_duplicate_path`` is set, path segments of ``second`` which
    are already at the end of ``first`` are not repeated: combining
    ``https://myserver.com/webdav`` and ``webdav/myfile.txt`` results in
    ``https://myserver.com/webdav/myfile.txt``.

    :param first: the base locator, may be None.
    :param second: the locator to combine with the base.
    :param remove_duplicate_path: (optional) strip duplicate path segments.
    :return: the combined locator.
    """
    if first is None:
        return second

    first_absolute = is_absolute(first)
    second_absolute = is_absolute(second)

    if first_absolute and second_absolute:
        first_parts, second_parts = urlsplit(first), urlsplit(second)
        if (
            first_parts.scheme.lower() != second_parts.scheme.lower()
            or first_parts.hostname != second_parts.hostname
        ):
            raise InvalidCombinationError(
                first, second, "the absolute URIs do not have the same host/scheme"
            )
        return second

    if not first_absolute and second_absolute:
        raise InvalidCombinationError(
            first, second, "a relative URI cannot be combined with an absolute URI"
        )

    if not first_absolute and not second_absolute:
        return f"{first.rstrip(separate)}{separate}{second.lstrip(separate)}"

    parts = urlsplit(first)
    first_segments = _segments(unquote(parts.path))
    second_segments = _segments(unquote(second))

    if second_segments and first_segments[-len(second_segments) :] == second_segments:
        return first

    if remove_duplicate_path:
        for overlap in range(len(second_segments) - 1, 0, -1):
            if first_segments[-overlap:] == second_segments[:overlap]:
                second_segments = second_segments[overlap:]
                break

    path = separate + separate.join(first_segments + second_segments)
    if second.endswith(separate) and not path.endswith(separate):
        path = f"{path}{separate}"
    return urlunsplit((parts.scheme, parts.netloc, path, "", ""))


def get_combined_uri_with_trailing_slash(
    first: str | None,
    second: str,
    remove_duplicate_path: bool = False,  # noqa: FBT001 FBT002
    expect_file: bool = False,  # noqa: FBT001 FBT002
) -> str:
    """Combine two locators and add a trailing slash when needed."""
    return add_trailing_slash(
        combine_uri(first, second, remove_duplicate_path), expect_file
    )


def unquote_uri(url: str) -> str:
    """Return the locator with a percent-decoded path."""
    parts = urlsplit(url)
    return urlunsplit(parts._replace(path=unquote(parts.path)))


def quote_uri(url: str) -> str:
    """Return the locator with a percent-encoded path."""
    parts = urlsplit(url)
    return urlunsplit(parts._replace(path=quote(parts.path)))


def get_absolute_uri_with_trailing_slash(base: str, url: str) -> str:
    """Resolve a locator against a session base.

    The result is absolute, its path is percent-decoded and it ends with a
    slash unless its last segment looks like a file.
    """
    combined = get_combined_uri_with_trailing_slash(
        base, url, remove_duplicate_path=True, expect_file=True
    )
    return unquote_uri(combined)


def remove_port(url: str) -> str:
    """Remove the port from an absolute locator."""
    if not is_absolute(url):
        return url

    parts = urlsplit(url)
    userinfo, host, _ = _split_netloc(parts.netloc)
    return urlunsplit(parts._replace(netloc=f"{userinfo}{host}"))


def set_port(url: str, port: int) -> str:
    """Set the port of an absolute locator."""
    if not is_absolute(url):
        return url

    parts = urlsplit(url)
    userinfo, host, _ = _split_netloc(parts.netloc)
    return urlunsplit(parts._replace(netloc=f"{userinfo}{host}:{port}"))


def get_port(url: str) -> int | None:
    """Return the port of an absolute locator, the scheme default if none is given."""
    if not is_absolute(url):
        return None

    parts = urlsplit(url)
    _, _, port = _split_netloc(parts.netloc)
    if port is not None:
        return int(port)
    return DEFAULT_PORTS.get(parts.scheme.lower())
