"""nuri.uri
A lenient URI value type, mostly used to carry file paths around as file:// URIs.
Components are found by searching for delimiters, not by matching the RFC 3986 grammar,
so splitting never fails. Validity is checked separately with the is_valid_* methods.
"""

import dataclasses
import functools
import logging
import re

from typing import Self

logger = logging.getLogger(__name__)

_DEFAULT_ENCODING: str = "utf-8"

# ALPHA = %x41-5A / %x61-7A
_ALPHA: str = r"[A-Za-z]"

# DIGIT = %x30-39
_DIGIT: str = r"[0-9]"

# scheme = ALPHA *( ALPHA / DIGIT / "+" / "-" / "." )
_SCHEME: str = rf"{_ALPHA}(?:{_ALPHA}|{_DIGIT}|[+\-.])*"
_SCHEME_PAT: re.Pattern[str] = re.compile(_SCHEME)

# port = *DIGIT
_PORT: str = rf"{_DIGIT}*"
_PORT_PAT: re.Pattern[str] = re.compile(_PORT)

# Neither the userinfo nor the host may contain any of these.
# IP-literals are not parsed, so "[" and "]" are rejected outright.
_AUTHORITY_ILLEGAL_PAT: re.Pattern[str] = re.compile(r"[/?#\[\]@]")

# Every character a URI may contain, without regard to where it appears.
# "%" is accepted without checking for the two HEXDIGs that should follow it.
_URI_CHAR: str = rf"(?:{_ALPHA}|{_DIGIT}|[!#$%&'()*+,\-./:;=?@\[\]_~])"
_URI_CHARS_PAT: re.Pattern[str] = re.compile(rf"{_URI_CHAR}*")

# Ends the authority.
_AUTHORITY_END_PAT: re.Pattern[str] = re.compile(r"[/?#]")

# Ends the path. A fragment is treated as part of the query.
_PATH_END_PAT: re.Pattern[str] = re.compile(r"[?#]")

# A "/.." that makes up a whole segment. "?" and "#" end a segment as "/" does.
_PARENT_SEGMENT_PAT: re.Pattern[str] = re.compile(r"/\.\.(?=[/?#]|\Z)")

# Schemes that normalize() rewrites. The empty scheme is a reference.
_NORMALIZED_SCHEMES: tuple[str, ...] = ("file", "")


def _to_text(data: str | bytes) -> str:
    if isinstance(data, bytes):
        return data.decode(_DEFAULT_ENCODING, errors="surrogateescape")
    return data


def _search_end(pattern: re.Pattern[str], text: str, pos: int) -> int:
    """Returns the index of the first match of pattern at or after pos, or len(text) if there is none."""
    m: re.Match[str] | None = pattern.search(text, pos)
    return m.start() if m is not None else len(text)


def _replace_all(text: str, search: str, replace: str, offset: int = 0) -> str:
    """Replaces every occurrence of search in text[offset:] with replace.
    Unlike str.replace, the result of a replacement is searched again, so _replace_all("///", "//", "/") == "/".
    replace must not contain search.
    """
    pos: int = text.find(search, offset)
    while pos != -1:
        text = text[:pos] + replace + text[pos + len(search) :]
        pos = text.find(search, pos)
    return text


def _resolve_parent_segments(text: str, offset: int) -> str:
    """Removes every "/.." segment in text[offset:] along with the segment it refers to.
    Nothing before offset is searched or rewritten.
    """
    m: re.Match[str] | None = _PARENT_SEGMENT_PAT.search(text, offset)
    while m is not None:
        start: int = text.rfind("/", offset, m.start())
        if start != -1:
            # "/name/.." becomes "/"
            text = text[:start] + "/" + text[m.end() :]
        elif m.start() == offset:
            # Nothing above the first segment to pop.
            text = text[:offset] + "/" + text[m.end() :]
        else:
            # "name/.." with no slash in front of name; drop it and the slash after it.
            rest: str = text[m.end() :]
            text = text[:offset] + (rest[1:] if rest.startswith("/") else rest)
        text = _replace_all(text, "//", "/", offset)
        m = _PARENT_SEGMENT_PAT.search(text, offset)
    return text


@dataclasses.dataclass(frozen=True)
class Span:
    """A half-open [start, end) range of the text a Split was computed from."""

    start: int
    end: int

    def __len__(self: Self) -> int:
        return self.end - self.start


@dataclasses.dataclass(frozen=True)
class Split:
    """The scheme, authority, path and query of a URI, as spans of the text they were found in.
    A Split keeps the text it was computed from, so it stays valid after the UriValue it came from changes.
    """

    text: str
    scheme_span: Span
    authority_span: Span
    path_span: Span
    query_span: Span

    def _part(self: Self, span: Span) -> str:
        return self.text[span.start : span.end]

    @property
    def scheme(self: Self) -> str:
        return self._part(self.scheme_span)

    @property
    def authority(self: Self) -> str:
        return self._part(self.authority_span)

    @property
    def path(self: Self) -> str:
        return self._part(self.path_span)

    @property
    def query(self: Self) -> str:
        return self._part(self.query_span)


def _split(text: str) -> Split:
    size: int = len(text)

    colon: int = text.find(":")
    has_authority: bool = False
    if colon == -1:
        scheme: Span = Span(0, 0)
        cursor: int = 0
    else:
        scheme = Span(0, colon)
        has_authority = text.startswith("//", colon + 1)
        cursor = colon + 3 if has_authority else colon + 1

    path_start: int = _search_end(_AUTHORITY_END_PAT, text, cursor) if has_authority else cursor
    path_end: int = _search_end(_PATH_END_PAT, text, path_start)
    query_start: int = min(path_end + 1, size)

    return Split(
        text=text,
        scheme_span=scheme,
        authority_span=Span(cursor, path_start),
        path_span=Span(path_start, path_end),
        query_span=Span(query_start, size),
    )


@functools.total_ordering
class UriValue:
    """A URI or file path held as text.

    The text does not have to be a valid URI. Every accessor splits the text again and returns
    the best substring it can find, falling back to "" for parts that are absent.
    Instances are mutable (see normalize and append) and not safe to mutate from several threads.
    """

    def __init__(self: Self, uri: "str | bytes | UriValue" = "") -> None:
        if isinstance(uri, UriValue):
            text: str = uri._uri
        elif isinstance(uri, (str, bytes)):
            text = _to_text(uri)
        else:
            raise TypeError(f"expected str, bytes or UriValue, got {type(uri).__name__}")
        self._uri: str = text

    @classmethod
    def make_file(cls: type[Self], path: str | bytes, name: str | bytes | None = None) -> Self:
        """Builds a normalized file:/// URI from path, and name joined to it with "/" if it is given.
        Neither argument is escaped.
        """
        if not isinstance(path, (str, bytes)):
            raise TypeError(f"path must be str or bytes, not {type(path).__name__}")
        if name is not None and not isinstance(name, (str, bytes)):
            raise TypeError(f"name must be str, bytes or None, not {type(name).__name__}")
        if name is not None and isinstance(name, bytes) != isinstance(path, bytes):
            raise TypeError("Cannot mix str and bytes")

        text: str = f"file:///{_to_text(path)}"
        if name is not None:
            text += f"/{_to_text(name)}"

        result: Self = cls(text)
        result.normalize()
        return result

    @staticmethod
    def is_valid_scheme(scheme: str) -> bool:
        """An empty scheme is valid; it means the URI is a reference."""
        return len(scheme) == 0 or _SCHEME_PAT.fullmatch(scheme) is not None

    @staticmethod
    def is_valid_authority(authority: str) -> bool:
        """userinfo@host:port, where userinfo and :port are optional.
        This is looser than RFC 3986: only a handful of delimiters are rejected in userinfo and host.
        """
        at: int = authority.find("@")
        colon: int = authority.find(":", at + 1)

        host_start: int = 0
        if at != -1:
            if _AUTHORITY_ILLEGAL_PAT.search(authority, 0, at) is not None:
                return False
            host_start = at + 1

        host_end: int = len(authority)
        if colon != -1:
            if _PORT_PAT.fullmatch(authority, colon + 1) is None:
                return False
            host_end = colon

        return _AUTHORITY_ILLEGAL_PAT.search(authority, host_start, host_end) is None

    def split(self: Self) -> Split:
        """Finds the scheme, authority, path and query in a single pass.

        scheme    everything before the first ":" (nothing if there is no ":")
        authority what follows "://" up to the first "/", "?" or "#"; empty unless the ":" is followed by "//"
        path      from there up to the first "?" or "#"
        query     everything after that delimiter, fragment included
        """
        return _split(self._uri)

    def normalize(self: Self) -> None:
        """Canonicalizes a file: or schemeless URI in place; URIs with any other scheme are left alone.

        Backslashes become slashes, runs of slashes are collapsed and "/.." segments are resolved.
        Only the text from the start of the authority onwards is rewritten, and "/.." never
        pops anything in front of the path, so the host of file://host/.. is kept.
        """
        split: Split = self.split()
        if split.scheme not in _NORMALIZED_SCHEMES:
            logger.debug("Not normalizing %r: scheme %r", self._uri, split.scheme)
            return

        boundary: int = split.authority_span.start
        uri: str = self._uri.replace("\\", "/")
        uri = _replace_all(uri, "//", "/", boundary)
        # Split again: the collapse above can shift where the path starts.
        uri = _resolve_parent_segments(uri, _split(uri).path_span.start)
        if uri[boundary:] == "/":
            uri = uri[:boundary]
        uri = _replace_all(uri, "//", "/", boundary)

        if uri != self._uri:
            logger.debug("Normalized %r to %r", self._uri, uri)
        self._uri = uri

    def append(self: Self, text: "str | bytes | UriValue") -> None:
        """Appends text as is; no separator is added and nothing is normalized."""
        if isinstance(text, UriValue):
            self._uri += text._uri
        elif isinstance(text, (str, bytes)):
            self._uri += _to_text(text)
        else:
            raise TypeError(f"expected str, bytes or UriValue, got {type(text).__name__}")

    def is_valid_uri(self: Self) -> bool:
        split: Split = self.split()
        if not self.is_valid_scheme(split.scheme):
            return False
        if not self.is_valid_authority(split.authority):
            return False
        return _URI_CHARS_PAT.fullmatch(self._uri) is not None

    def is_reference(self: Self) -> bool:
        return len(self.split().scheme_span) == 0

    def is_empty(self: Self) -> bool:
        return len(self._uri) == 0

    def get_scheme(self: Self) -> str:
        return self.split().scheme

    def get_authority(self: Self) -> str:
        return self.split().authority

    def get_userinfo(self: Self) -> str:
        """The text between "://" and the first "@" after it.
        The "@" is not required to be inside the authority.
        """
        marker: int = self._uri.find("://")
        if marker == -1:
            return ""
        start: int = marker + len("://")
        at: int = self._uri.find("@", start)
        if at == -1:
            return ""
        return self._uri[start:at]

    def get_username(self: Self) -> str:
        return self.get_userinfo().partition(":")[0]

    def get_password(self: Self) -> str:
        return self.get_userinfo().partition(":")[2]

    def get_host(self: Self) -> str:
        authority: str = self.get_authority()
        start: int = authority.find("@") + 1
        end: int = authority.find(":", start)
        if end == -1:
            end = len(authority)
        return authority[start:end]

    def get_port(self: Self) -> str:
        """The digits after the last ":" of the authority, or "" if there are none or anything else is there."""
        authority: str = self.get_authority()
        colon: int = authority.rfind(":", authority.find("@") + 1)
        if colon == -1:
            return ""
        port: str = authority[colon + 1 :]
        if _PORT_PAT.fullmatch(port) is None:
            return ""
        return port

    def get_path(self: Self) -> str:
        return self.split().path

    def get_name(self: Self) -> str:
        return self.get_path().rpartition("/")[2]

    def get_ext(self: Self) -> str:
        """Everything after the last "." in the path.
        The dot is looked for in the whole path, not just the name, so "/a.b/c" gives "b/c".
        """
        _, dot, ext = self.get_path().rpartition(".")
        return ext if dot else ""

    def get_query(self: Self) -> str:
        return self.split().query

    def compare(self: Self, other: "UriValue | str") -> int:
        """Negative, zero or positive as this URI's text sorts before, equal to or after other's."""
        other_text: str = other._uri if isinstance(other, UriValue) else other
        return (self._uri > other_text) - (self._uri < other_text)

    def __eq__(self: Self, other: object) -> bool:
        if isinstance(other, (UriValue, str)):
            return self.compare(other) == 0
        return NotImplemented

    def __lt__(self: Self, other: object) -> bool:
        if isinstance(other, (UriValue, str)):
            return self.compare(other) < 0
        return NotImplemented

    # Mutable, so not hashable.
    __hash__ = None  # type: ignore[assignment]

    def __str__(self: Self) -> str:
        return self._uri

    def __len__(self: Self) -> int:
        return len(self._uri)

    def __repr__(self: Self) -> str:
        return f"{self.__class__.__name__}({self._uri!r})"
