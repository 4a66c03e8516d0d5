"""
Resource reads with OData-style query parameters.

A resource with no enabled options is static and returns its first
``resource_default_top`` rows. Otherwise only the enabled options
(``filter``, ``orderby``, ``top``, ``skip``, ``select``) are read from the
request; the others are ignored.
"""

import json
from collections.abc import Mapping
from typing import Any
from urllib.parse import parse_qsl, urlsplit

from schemamcp.adapters.base import ServiceRegistry
from schemamcp.adapters.sqlalchemy.compiler import QueryExecutor
from schemamcp.annotations.structures import ResourceAnnotation
from schemamcp.core.dsl import QueryArgs
from schemamcp.core.errors import FilterParseError, SchemaMcpError
from schemamcp.core.types import ResourceOption
from schemamcp.logging import get_logger
from schemamcp.mcp.config import RESOURCE_DEFAULT_TOP
from schemamcp.mcp.filters import parse_filter, parse_orderby, parse_select
from schemamcp.utils.timeout import DEFAULT_TIMEOUT_MS

logger = get_logger(__name__)

MAX_RESOURCE_TOP = 1000


def _parse_int(name: str, raw: str, minimum: int, maximum: int | None = None) -> int:
    try:
        value = int(raw)
    except ValueError:
        raise FilterParseError(f"Invalid {name} parameter: {raw}") from None
    if value < minimum or (maximum is not None and value > maximum):
        bound = f"{minimum}..{maximum}" if maximum is not None else f">= {minimum}"
        raise FilterParseError(f"Invalid {name} parameter: {raw} (expected {bound})")
    return value


class ResourceReader:
    """
    Reads one resource.

    Example:
        reader = ResourceReader(books, services)
        contents = await reader.read({"filter": "stock gt 0", "top": "10"})
    """

    def __init__(
        self,
        resource: ResourceAnnotation,
        services: ServiceRegistry,
        *,
        default_top: int = RESOURCE_DEFAULT_TOP,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
    ) -> None:
        self.resource = resource
        self.services = services
        self.default_top = default_top
        self.timeout_ms = timeout_ms

    @property
    def name(self) -> str:
        return self.resource.name

    @property
    def uri(self) -> str:
        return f"odata://{self.resource.service_name}/{self.resource.name}"

    @property
    def is_static(self) -> bool:
        return not self.resource.functionalities

    @property
    def uri_template(self) -> str:
        options = [o.value for o in ResourceOption if o.value in self.resource.functionalities]
        return self.uri + "".join(f"{{?{o}}}" for o in options)

    def definition(self) -> dict[str, Any]:
        result = {
            "name": self.resource.name,
            "title": self.resource.target,
            "description": self.resource.description,
            "mimeType": "application/json",
        }
        if self.is_static:
            result["uri"] = self.uri
        else:
            result["uriTemplate"] = self.uri_template
        return result

    def matches(self, uri: str) -> bool:
        return uri.split("?", 1)[0] == self.uri

    def build_args(self, params: Mapping[str, str]) -> QueryArgs:
        """
        Turn enabled request parameters into query arguments.

        Raises:
            FilterParseError: A parameter is malformed or names an unknown field
        """
        enabled = self.resource.functionalities
        fields = self.resource.scalar_fields

        def given(option: ResourceOption) -> str | None:
            if option.value not in enabled:
                return None
            value = params.get(option.value) or params.get(f"${option.value}")
            return value if value and value.strip() else None

        top = self.default_top
        if (raw := params.get("top")) and (self.is_static or "top" in enabled):
            top = _parse_int("top", raw, 1, MAX_RESOURCE_TOP)
        skip = _parse_int("skip", raw, 0) if (raw := given(ResourceOption.SKIP)) else 0

        filter_text = given(ResourceOption.FILTER)
        select_text = given(ResourceOption.SELECT)
        orderby_text = given(ResourceOption.ORDERBY)

        # top may exceed the tool page size here, so validation is not re-run
        return QueryArgs.model_construct(
            top=top,
            skip=skip,
            where=parse_filter(filter_text, fields) if filter_text else None,
            select=parse_select(select_text, fields) if select_text else None,
            orderby=parse_orderby(orderby_text, fields) if orderby_text else None,
        )

    async def read(self, params: Mapping[str, str] | None = None) -> list[dict[str, Any]]:
        service = self.services.resolve(self.resource.service_name)
        args = self.build_args(params or {})
        executor = QueryExecutor(self.resource, service, timeout_ms=self.timeout_ms)
        return await executor.execute(args)

    async def read_uri(self, uri: str) -> dict[str, Any]:
        """
        Read by URI and return ``ReadResourceResult`` contents.

        Failures are reported as an error envelope in the text content.
        """
        params = dict(parse_qsl(urlsplit(uri).query))
        try:
            payload: Any = await self.read(params)
        except SchemaMcpError as e:
            logger.warning("Resource read failed", resource=self.resource.name, code=e.code)
            payload = e.to_dict()
        return {
            "contents": [
                {
                    "uri": uri,
                    "mimeType": "application/json",
                    "text": json.dumps(payload, default=str),
                }
            ]
        }
