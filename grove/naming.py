"""
Dotted hierarchical names and their filesystem layout.

A name such as ``prototypes.awesome-project`` addresses a node in the naming
tree. Its on-disk location is derived purely from the segments: every
segment but the last becomes an ``_``-prefixed directory, the last one is
used as-is (``_prototypes/awesome-project``). Because the number of path
components always equals the number of segments and each component is a
fixed function of its segment, the mapping is injective.

Nothing in this module touches the filesystem.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Iterator, Optional, Tuple, Union

from grove.errors import InvalidNameError

SEGMENT_RE = re.compile(r"^[A-Za-z0-9_-]+$")
SEPARATOR = "."
NAMESPACE_PREFIX = "_"

MAX_DEPTH = 16
MAX_LENGTH = 200


@dataclass(frozen=True, order=False)
class Name:
    """Immutable dotted identifier."""
    segments: Tuple[str, ...]

    def __str__(self) -> str:
        return SEPARATOR.join(self.segments)

    def __repr__(self) -> str:
        return f"Name({str(self)!r})"

    def __lt__(self, other: "Name") -> bool:
        return str(self) < str(other)

    def __le__(self, other: "Name") -> bool:
        return str(self) <= str(other)

    def __gt__(self, other: "Name") -> bool:
        return str(self) > str(other)

    def __ge__(self, other: "Name") -> bool:
        return str(self) >= str(other)

    @property
    def leaf(self) -> str:
        return self.segments[-1]

    @property
    def depth(self) -> int:
        return len(self.segments)

    @property
    def parent(self) -> Optional["Name"]:
        if len(self.segments) == 1:
            return None
        return Name(self.segments[:-1])

    def child(self, segment: str) -> "Name":
        return parse(f"{self}{SEPARATOR}{segment}")

    def is_descendant_of(self, other: "Name") -> bool:
        """True if ``other`` is a strict ancestor of this name."""
        return (
            len(self.segments) > len(other.segments)
            and self.segments[:len(other.segments)] == other.segments
        )

    def ancestors(self) -> Iterator["Name"]:
        for i in range(1, len(self.segments)):
            yield Name(self.segments[:i])


NameLike = Union[str, Name]


def parse(raw: NameLike) -> Name:
    """Parse and validate a raw dotted name.

    Raises:
        InvalidNameError: naming the input and the rule it breaks.
    """
    if isinstance(raw, Name):
        return raw
    if not isinstance(raw, str):
        raise InvalidNameError(repr(raw), "names must be strings")
    if not raw:
        raise InvalidNameError(raw, "name is empty")
    if len(raw) > MAX_LENGTH:
        raise InvalidNameError(raw, f"name is longer than {MAX_LENGTH} characters")
    if raw.startswith(SEPARATOR) or raw.endswith(SEPARATOR):
        raise InvalidNameError(raw, "leading or trailing '.' is not allowed")

    segments = raw.split(SEPARATOR)
    if len(segments) > MAX_DEPTH:
        raise InvalidNameError(raw, f"name is deeper than {MAX_DEPTH} segments")
    for index, segment in enumerate(segments):
        if not segment:
            raise InvalidNameError(raw, f"empty segment at position {index} ('..')")
        if not SEGMENT_RE.match(segment):
            raise InvalidNameError(
                raw, f"segment {segment!r} must match [A-Za-z0-9_-]+"
            )
    return Name(tuple(segments))


def to_path(name: NameLike) -> PurePosixPath:
    """Map a name to its relative location below a kind root."""
    name = parse(name)
    parts = [NAMESPACE_PREFIX + segment for segment in name.segments[:-1]]
    parts.append(name.leaf)
    return PurePosixPath(*parts)


def from_path(relpath: Union[str, PurePosixPath]) -> Name:
    """Inverse of :func:`to_path`.

    Raises:
        InvalidNameError: if a namespace component lacks the ``_`` prefix or a
            recovered segment is not valid.
    """
    parts = PurePosixPath(relpath).parts
    if not parts:
        raise InvalidNameError(str(relpath), "path is empty")
    segments = []
    for part in parts[:-1]:
        if not part.startswith(NAMESPACE_PREFIX):
            raise InvalidNameError(
                str(relpath), f"namespace directory {part!r} lacks the '_' prefix"
            )
        segments.append(part[len(NAMESPACE_PREFIX):])
    segments.append(parts[-1])
    return parse(SEPARATOR.join(segments))


def validate_alias(alias: str) -> str:
    """Aliases are single segments: one directory entry, one env suffix."""
    if not isinstance(alias, str) or not alias:
        raise InvalidNameError(str(alias), "alias is empty")
    if not SEGMENT_RE.match(alias):
        raise InvalidNameError(alias, "alias must match [A-Za-z0-9_-]+")
    return alias
