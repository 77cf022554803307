from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from types import MappingProxyType
from typing import Any, Mapping, Optional

from .levels import Severity


def _freeze(values: Optional[Mapping[str, Any]]) -> Mapping[str, Any]:
    return MappingProxyType(dict(values or {}))


@dataclass(frozen=True)
class LogRecord:
    """A single log event.

    Immutable once built: the mappings are copied into read-only views, and
    enrichment produces a new record rather than mutating this one.
    """

    timestamp: datetime
    level: Severity
    message: str
    correlation_id: Optional[str] = None
    properties: Mapping[str, Any] = field(default_factory=dict)
    enrichment: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "level", Severity.coerce(self.level))
        object.__setattr__(self, "properties", _freeze(self.properties))
        object.__setattr__(self, "enrichment", _freeze(self.enrichment))

    def with_enrichment(self, values: Mapping[str, Any]) -> "LogRecord":
        return replace(self, enrichment={**self.enrichment, **values})
