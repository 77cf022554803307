"""
Enrichers.

Each enricher contributes key/value pairs that are merged into the structured
output of a record. They run after every gate and filter has accepted the
record, immediately before formatting.
"""

from __future__ import annotations

import getpass
import os
import platform
import socket
import sys
import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, Iterator, List, Optional

from .config import settings
from .diagnostics import get_diagnostic_logger
from .records import LogRecord

logger = get_diagnostic_logger("logwarden.enrichers")


class BaseEnricher(ABC):
    """Abstract base class for enrichers."""

    name: str = "enricher"

    @abstractmethod
    def enrich(self) -> Dict[str, Any]:
        """Return the fields to attach to the current record."""
        ...


class MachineEnricher(BaseEnricher):
    name = "machine"

    def __init__(self) -> None:
        # Host facts do not change during the process lifetime.
        self._fields = {
            "machine": socket.gethostname(),
            "os": platform.system(),
            "osVersion": platform.release(),
        }

    def enrich(self) -> Dict[str, Any]:
        return dict(self._fields)


class ProcessEnricher(BaseEnricher):
    name = "process"

    def enrich(self) -> Dict[str, Any]:
        return {"processId": os.getpid(), "processName": os.path.basename(sys.argv[0]) or "python"}


class ThreadEnricher(BaseEnricher):
    name = "thread"

    def enrich(self) -> Dict[str, Any]:
        current = threading.current_thread()
        return {"threadId": threading.get_ident(), "threadName": current.name}


class EnvironmentEnricher(BaseEnricher):
    """Adds the deployment environment, the user and selected environment variables."""

    name = "environment"

    def __init__(self, variables: Iterable[str] = (), *, environment: Optional[str] = None) -> None:
        self.variables = tuple(variables)
        self._environment = environment

    def _environment_name(self) -> str:
        if self._environment is not None:
            return self._environment
        return settings.environment.env

    def enrich(self) -> Dict[str, Any]:
        try:
            user = getpass.getuser()
        except (KeyError, OSError):
            user = "unknown"
        fields: Dict[str, Any] = {"environment": self._environment_name(), "user": user}
        for variable in self.variables:
            value = os.environ.get(variable)
            if value is not None:
                fields[variable] = value
        return fields


class NetworkEnricher(BaseEnricher):
    name = "network"

    def __init__(self) -> None:
        self._fields: Optional[Dict[str, Any]] = None

    def enrich(self) -> Dict[str, Any]:
        if self._fields is None:
            hostname = socket.gethostname()
            try:
                address = socket.gethostbyname(hostname)
            except OSError:
                address = "127.0.0.1"
            self._fields = {"hostName": socket.getfqdn(hostname), "ipAddress": address}
        return dict(self._fields)


class EnrichmentChain:
    """Ordered enrichers; later enrichers win on key collisions."""

    def __init__(self, enrichers: Iterable[BaseEnricher] = ()) -> None:
        self._enrichers: List[BaseEnricher] = list(enrichers)

    def __len__(self) -> int:
        return len(self._enrichers)

    def __iter__(self) -> Iterator[BaseEnricher]:
        return iter(self._enrichers)

    def add(self, enricher: BaseEnricher) -> None:
        self._enrichers.append(enricher)

    def apply(self, record: LogRecord) -> LogRecord:
        if not self._enrichers:
            return record
        fields: Dict[str, Any] = {}
        for enricher in self._enrichers:
            try:
                fields.update(enricher.enrich())
            except Exception as exc:
                # A broken enricher costs its fields, not the record.
                logger.warning("enricher_failed", enricher=enricher.name, error=str(exc))
        return record.with_enrichment(fields)
