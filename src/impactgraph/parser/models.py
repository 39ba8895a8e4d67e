"""Structural descriptors produced by the per-language parsers."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field, field_validator

UNKNOWN_LINE = -1


class EntityKind(str, Enum):
    """Kinds of graph entities."""

    CLASS = "class"
    METHOD = "method"


class Marker(str, Enum):
    """Critical capabilities an entity may declare.

    Parsers translate raw framework annotations/decorators into these through
    ``MARKER_TABLE`` and ``QUALIFIED_MARKER_TABLE``; anything unmapped becomes
    ``NONE`` and is discarded.
    """

    TRANSACTIONAL = "transactional"
    CACHING = "caching"
    SCHEDULED = "scheduled"
    ASYNC_DISPATCH = "async_dispatch"
    SECURITY_ENFORCED = "security_enforced"
    HTTP_WRITE_ENDPOINT = "http_write_endpoint"
    NONE = "none"

    @property
    def is_critical(self) -> bool:
        return self is not Marker.NONE

    @classmethod
    def from_annotation(cls, name: str) -> Marker:
        """Map a raw annotation or decorator name to a marker.

        Distinctive names match on their last dotted component, so
        ``org.springframework.transaction.annotation.Transactional`` and
        ``transaction.atomic`` both resolve. Generic verbs such as ``post``
        or ``task`` only match behind a known receiver (``app.post``,
        ``celery.task``); ``mock.patch`` stays unmarked.
        """
        if not name:
            return cls.NONE
        parts = name.lstrip("@").split("(")[0].split(".")
        qualified = ".".join(parts[-2:])
        if qualified in QUALIFIED_MARKER_TABLE:
            return QUALIFIED_MARKER_TABLE[qualified]
        return MARKER_TABLE.get(parts[-1], cls.NONE)


MARKER_TABLE: dict[str, Marker] = {
    # JVM / Spring
    "Transactional": Marker.TRANSACTIONAL,
    "Cacheable": Marker.CACHING,
    "CacheEvict": Marker.CACHING,
    "CachePut": Marker.CACHING,
    "Scheduled": Marker.SCHEDULED,
    "Async": Marker.ASYNC_DISPATCH,
    "EventListener": Marker.ASYNC_DISPATCH,
    "PreAuthorize": Marker.SECURITY_ENFORCED,
    "Secured": Marker.SECURITY_ENFORCED,
    "RolesAllowed": Marker.SECURITY_ENFORCED,
    "PostMapping": Marker.HTTP_WRITE_ENDPOINT,
    "PutMapping": Marker.HTTP_WRITE_ENDPOINT,
    "DeleteMapping": Marker.HTTP_WRITE_ENDPOINT,
    "PatchMapping": Marker.HTTP_WRITE_ENDPOINT,
    # Python
    "atomic": Marker.TRANSACTIONAL,
    "transactional": Marker.TRANSACTIONAL,
    "lru_cache": Marker.CACHING,
    "cached": Marker.CACHING,
    "cache_page": Marker.CACHING,
    "periodic_task": Marker.SCHEDULED,
    "scheduled_job": Marker.SCHEDULED,
    "shared_task": Marker.ASYNC_DISPATCH,
    "receiver": Marker.ASYNC_DISPATCH,
    "login_required": Marker.SECURITY_ENFORCED,
    "permission_required": Marker.SECURITY_ENFORCED,
    "requires_auth": Marker.SECURITY_ENFORCED,
}

# Web framework route objects whose write verbs declare an endpoint
_ROUTE_RECEIVERS = ("app", "router", "api", "bp", "blueprint")

QUALIFIED_MARKER_TABLE: dict[str, Marker] = {
    **{
        f"{receiver}.{verb}": Marker.HTTP_WRITE_ENDPOINT
        for receiver in _ROUTE_RECEIVERS
        for verb in ("post", "put", "patch", "delete")
    },
    "functools.cache": Marker.CACHING,
    "celery.task": Marker.ASYNC_DISPATCH,
    "app.task": Marker.ASYNC_DISPATCH,
}


def _to_markers(values: list) -> list[Marker]:
    markers: list[Marker] = []
    for value in values or []:
        marker = value if isinstance(value, Marker) else Marker.from_annotation(str(value))
        if marker is not Marker.NONE and marker not in markers:
            markers.append(marker)
    return markers


class MethodDescriptor(BaseModel):
    """A method as reported by the structural parser."""

    name: str
    class_name: str
    called_names: list[str] = Field(default_factory=list)
    markers: list[Marker] = Field(default_factory=list)
    start_line: int = UNKNOWN_LINE
    end_line: int = UNKNOWN_LINE

    @field_validator("markers", mode="before")
    @classmethod
    def _map_markers(cls, value: list) -> list[Marker]:
        return _to_markers(value)

    @property
    def entity_id(self) -> str:
        return f"{self.class_name}.{self.name}"


class EntityDescriptor(BaseModel):
    """A class-like entity (class, interface) with its nested methods."""

    name: str  # fully qualified, e.g. "shop.billing.InvoiceService"
    kind: str = "class"
    file_path: str = ""
    markers: list[Marker] = Field(default_factory=list)
    supertypes: list[str] = Field(default_factory=list)
    injected_dependency_types: list[str] = Field(default_factory=list)
    methods: list[MethodDescriptor] = Field(default_factory=list)

    @field_validator("markers", mode="before")
    @classmethod
    def _map_markers(cls, value: list) -> list[Marker]:
        return _to_markers(value)

    @property
    def simple_name(self) -> str:
        return self.name.rsplit(".", 1)[-1]


# Language detection by file extension
EXTENSION_LANGUAGE_MAP: dict[str, str] = {
    ".py": "python",
    ".pyi": "python",
    ".java": "java",
}


def detect_language(file_path: str) -> str | None:
    """Detect programming language from file extension."""
    from pathlib import Path

    ext = Path(file_path).suffix.lower()
    return EXTENSION_LANGUAGE_MAP.get(ext)
