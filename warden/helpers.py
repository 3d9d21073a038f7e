"""Host helper declarations callable through the CALL instruction."""

from dataclasses import dataclass
import json
import re

from .constants import MAX_HELPERS


@dataclass
class HelperDeclaration:
    """Metadata describing a host-provided helper function."""

    name: str
    id: int
    arg_count: int = 5

    def __post_init__(self):
        self.name = (self.name or "").strip()
        if not self.name:
            raise ValueError("Helper declaration requires a name")
        try:
            self.id = int(self.id)
        except (TypeError, ValueError):
            raise ValueError(
                f"Helper declaration {self.name} has a non-integer id: {self.id!r}"
            ) from None
        if not 0 <= self.id < MAX_HELPERS:
            raise ValueError(
                f"Helper declaration {self.name} id {self.id} outside 0..{MAX_HELPERS - 1}"
            )
        self.arg_count = int(self.arg_count)
        if not 0 <= self.arg_count <= 5:
            raise ValueError(
                f"Helper declaration {self.name} takes at most 5 arguments"
            )

    def to_dict(self):
        return {"name": self.name, "id": self.id, "arg_count": self.arg_count}

    @classmethod
    def from_dict(cls, data):
        if not isinstance(data, dict):
            raise TypeError("Helper declaration must be built from a mapping")
        arg_count = data.get("arg_count", data.get("args", 5))
        return cls(data.get("name"), data.get("id"), arg_count)


HELPER_REGISTRY = {}


INLINE_HELPER_PATTERN = re.compile(
    r"^\s*(?P<name>[A-Za-z_][A-Za-z0-9_]*)\s*:\s*(?P<id>\d+)\s*"
    r"(?:/\s*(?P<args>\d+))?\s*$"
)


def parse_inline_helpers(schema):
    """Parse ``name:id[/args]`` lines (or comma separated entries)."""

    if not schema:
        return []

    declarations = []
    for entry in re.split(r"[\n,]+", schema):
        entry = entry.strip()
        if not entry or entry.startswith("#"):
            continue
        match = INLINE_HELPER_PATTERN.match(entry)
        if not match:
            raise ValueError(f"Invalid inline helper declaration: {entry}")
        args = match.group("args")
        declarations.append(
            HelperDeclaration(
                name=match.group("name"),
                id=int(match.group("id")),
                arg_count=int(args) if args is not None else 5,
            )
        )
    return declarations


def _normalize_helper_declarations(source):
    if source is None:
        return []
    if isinstance(source, HelperDeclaration):
        return [source]
    if isinstance(source, str):
        trimmed = source.strip()
        if not trimmed:
            return []
        if trimmed[0] in "[{":
            return _normalize_helper_declarations(json.loads(trimmed))
        return parse_inline_helpers(trimmed)
    if isinstance(source, dict):
        if isinstance(source.get("helpers"), list):
            return _normalize_helper_declarations(source["helpers"])
        return [HelperDeclaration.from_dict(source)]
    if isinstance(source, (list, tuple)):
        decls = []
        for item in source:
            decls.extend(_normalize_helper_declarations(item))
        return decls
    raise TypeError(f"Unsupported helper declaration type: {type(source)!r}")


def resolve_helpers(source):
    """Return an ``id -> HelperDeclaration`` mapping for *source*.

    ``None`` resolves to the global registry.
    """

    if source is None:
        return get_registered_helpers()
    if isinstance(source, dict) and all(isinstance(k, int) for k in source):
        return dict(source)
    table = {}
    for decl in _normalize_helper_declarations(source):
        if decl.id in table:
            raise ValueError(f"Duplicate helper id {decl.id}")
        table[decl.id] = decl
    return table


def register_helpers(source, *, reset=False):
    """Register one or more helper declarations in the global registry."""

    if reset:
        HELPER_REGISTRY.clear()
    for decl in _normalize_helper_declarations(source):
        if decl.id in HELPER_REGISTRY:
            raise ValueError(f"Duplicate helper id {decl.id} ({decl.name})")
        HELPER_REGISTRY[decl.id] = decl


def clear_helper_registry():
    """Remove all registered helpers."""

    HELPER_REGISTRY.clear()


def get_registered_helpers():
    """Return a snapshot of the currently registered helpers."""

    return dict(HELPER_REGISTRY)


__all__ = [
    "HelperDeclaration",
    "HELPER_REGISTRY",
    "parse_inline_helpers",
    "register_helpers",
    "resolve_helpers",
    "clear_helper_registry",
    "get_registered_helpers",
]
