"""
Data-access runtime interface.

The compilers build statements; a ``DataService`` runs them. Each service
corresponds to one service of the schema model and resolves entity names
relative to it.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from schemamcp.core.context import Principal
from schemamcp.core.errors import MissingServiceError, OperationFailedError
from schemamcp.logging import get_logger

logger = get_logger(__name__)


@dataclass
class OperationRequest:
    """A call of a bound or unbound function/action."""

    event: str
    data: dict[str, Any]
    principal: Principal
    service: DataService
    entity: str | None = None
    keys: dict[str, Any] = field(default_factory=dict)


OperationHandler = Callable[[OperationRequest], Awaitable[Any]]


class Transaction(ABC):
    """
    An explicit transaction opened for one principal.

    Callers commit or roll back exactly once; a second call is a no-op.
    """

    def __init__(self, principal: Principal) -> None:
        self.principal = principal
        self.finished = False

    @abstractmethod
    async def run(self, statement: Any) -> Any:
        """Execute a statement and return the raw result."""
        ...

    @abstractmethod
    async def fetch(self, statement: Any) -> list[dict[str, Any]]:
        """Execute a select and return rows as dicts."""
        ...

    @abstractmethod
    async def commit(self) -> None: ...

    @abstractmethod
    async def rollback(self) -> None: ...


class DataService(ABC):
    """
    Abstract data-access runtime.

    Implementations provide entity lookup, reads, transactions and the draft
    entry point. Operation dispatch (``on``/``send``) is shared.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._handlers: dict[tuple[str | None, str], OperationHandler] = {}

    @abstractmethod
    def entity(self, target: str) -> Any:
        """Return the table-like object for an entity of this service."""
        ...

    @abstractmethod
    def draft_entity(self, target: str) -> Any | None:
        """Return the draft shadow of an entity, or None if it has none."""
        ...

    @abstractmethod
    async def read(self, statement: Any) -> list[dict[str, Any]]: ...

    @abstractmethod
    def tx(self, principal: Principal) -> Transaction: ...

    @abstractmethod
    async def new_draft(
        self,
        tx: Transaction,
        target: str,
        data: dict[str, Any],
        principal: Principal,
    ) -> dict[str, Any]:
        """
        Create a root draft together with its administrative record.

        Returns the inserted draft row.
        """
        ...

    def on(self, event: str, handler: OperationHandler, entity: str | None = None) -> None:
        """Register the handler of a function or action (bound when ``entity`` is set)."""
        self._handlers[(entity, event)] = handler

    async def send(
        self,
        event: str,
        data: dict[str, Any] | None = None,
        *,
        principal: Principal,
        entity: str | None = None,
        keys: dict[str, Any] | None = None,
    ) -> Any:
        handler = self._handlers.get((entity, event))
        if handler is None:
            raise OperationFailedError(
                f"No handler registered for '{event}'"
                + (f" on '{entity}'" if entity else "")
                + f" in service {self.name}"
            )
        request = OperationRequest(
            event=event,
            data=data or {},
            principal=principal,
            service=self,
            entity=entity,
            keys=keys or {},
        )
        logger.debug("Dispatching operation", operation=event, entity=entity, service=self.name)
        return await handler(request)


class ServiceRegistry:
    """Live services by name."""

    def __init__(self, services: list[DataService] | None = None) -> None:
        self._services: dict[str, DataService] = {}
        for service in services or []:
            self.register(service)

    def register(self, service: DataService) -> None:
        self._services[service.name] = service

    def __contains__(self, name: object) -> bool:
        return name in self._services

    def resolve(self, name: str) -> DataService:
        """
        Find a service by exact name, then case-insensitively.

        Raises:
            MissingServiceError: No such service is registered
        """
        service = self._services.get(name)
        if service is not None:
            return service
        lowered = name.lower()
        for candidate_name, candidate in self._services.items():
            if candidate_name.lower() == lowered:
                return candidate
        raise MissingServiceError(name)
