"""
Error taxonomy for Grove.

Every registry, link graph and materializer operation either succeeds or
raises exactly one of these. Each class carries a ``kind`` string so front
ends can branch on the failure without importing every class.
"""
from typing import Iterable, List, Optional, Sequence


class GroveError(Exception):
    """Base class for all Grove failures."""
    kind = "GroveError"


class InvalidNameError(GroveError):
    kind = "InvalidName"

    def __init__(self, raw: str, reason: str):
        self.raw = raw
        self.reason = reason
        super().__init__(f"Invalid name {raw!r}: {reason}")


class DuplicateNameError(GroveError):
    kind = "DuplicateName"

    def __init__(self, name):
        self.name = name
        super().__init__(f"{name} is already registered")


class PathConflictError(GroveError):
    kind = "PathConflict"

    # relation of ``path`` to the root of ``owner``
    _RELATIONS = {
        "same": "path is already owned by",
        "inside": "path lies inside the root of",
        "contains": "path contains the root of",
    }

    def __init__(self, name, path, owner, relation: str = "same"):
        self.name = name
        self.path = path
        self.owner = owner
        self.relation = relation
        super().__init__(
            f"Cannot use {path} for {name}: {self._RELATIONS[relation]} {owner}"
        )


class NotFoundError(GroveError):
    kind = "NotFound"

    def __init__(self, name, what: str = "node"):
        self.name = name
        super().__init__(f"No {what} named {name} is registered")


class UnknownSourceError(GroveError):
    kind = "UnknownSource"

    def __init__(self, name):
        self.name = name
        super().__init__(f"Link source {name} is not registered")


class UnknownTargetError(GroveError):
    kind = "UnknownTarget"

    def __init__(self, name):
        self.name = name
        super().__init__(f"Link target {name} is not registered")


class UnknownAliasError(GroveError):
    kind = "UnknownAlias"

    def __init__(self, source, alias: str):
        self.source = source
        self.alias = alias
        super().__init__(f"{source} has no link with alias {alias!r}")


class AliasExistsError(GroveError):
    kind = "AliasExists"

    def __init__(self, source, alias: str, existing_target):
        self.source = source
        self.alias = alias
        self.existing_target = existing_target
        super().__init__(
            f"{source} already uses alias {alias!r} (linked to {existing_target})"
        )


class CycleDetectedError(GroveError):
    kind = "CycleDetected"

    def __init__(self, source, alias: str, target, cycle: Sequence):
        self.source = source
        self.alias = alias
        self.target = target
        self.cycle = list(cycle)
        chain = " -> ".join(str(n) for n in self.cycle)
        super().__init__(
            f"Link {source}/{alias} -> {target} would close a cycle: {chain}"
        )


class HasDependentsError(GroveError):
    kind = "HasDependents"

    def __init__(self, name, edges: Iterable, direction: str = "incoming"):
        self.name = name
        self.edges = list(edges)
        self.direction = direction
        described = ", ".join(f"{e.source}/{e.alias} -> {e.target}" for e in self.edges)
        if direction == "incoming":
            message = f"Cannot remove {name}: still targeted by {described}"
        else:
            message = (
                f"Cannot remove {name}: it still has outgoing links {described} "
                f"(remove them first or cascade)"
            )
        super().__init__(message)


class FilesystemError(GroveError):
    kind = "FilesystemError"

    def __init__(self, message: str, path=None):
        self.path = path
        super().__init__(message)


class StateCorruptedError(FilesystemError):
    """A state file could not be parsed; it has been quarantined."""


class AliasPathOccupiedError(GroveError):
    kind = "AliasPathOccupied"

    def __init__(self, source, alias: str, path):
        self.source = source
        self.alias = alias
        self.path = path
        super().__init__(
            f"Cannot materialize {source}/{alias}: {path} is occupied by an entry "
            f"that is not a Grove link"
        )


class LockTimeoutError(GroveError):
    kind = "LockTimeout"

    def __init__(self, lock_file, timeout: float, holder: Optional[str] = None):
        self.lock_file = lock_file
        self.timeout = timeout
        self.holder = holder
        message = f"Timed out after {timeout:g}s waiting for state lock {lock_file}"
        if holder:
            message += f" (held by {holder})"
        super().__init__(message)


class ChildProcessSpawnError(GroveError):
    """The child could not be started at all (not a nonzero exit)."""
    kind = "ChildProcessError"

    def __init__(self, target, argv: List[str], reason: str):
        self.target = target
        self.argv = list(argv)
        self.reason = reason
        super().__init__(f"Could not start {argv[0] if argv else '?'} for {target}: {reason}")
