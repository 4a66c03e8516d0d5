"""
Server configuration.

Loaded from a mapping (for example the ``"mcp"`` section of a project
configuration file) or from ``SCHEMAMCP_*`` environment variables.
"""

import json
import os
from collections.abc import Mapping
from typing import Any, Literal, TextIO

from pydantic import BaseModel, Field

from schemamcp.core.types import OperationMode
from schemamcp.logging import configure_logging
from schemamcp.utils.timeout import DEFAULT_TIMEOUT_MS

RESOURCE_DEFAULT_TOP = 100

_TEXT_FIELDS = {"name", "version", "auth", "instructions", "log_level", "log_format"}


class ProtocolCapability(BaseModel):
    list_changed: bool = True
    subscribe: bool = False

    model_config = {"frozen": True}


class Capabilities(BaseModel):
    tools: ProtocolCapability = Field(default_factory=ProtocolCapability)
    resources: ProtocolCapability = Field(default_factory=ProtocolCapability)
    prompts: ProtocolCapability = Field(default_factory=ProtocolCapability)

    model_config = {"frozen": True}


class McpConfig(BaseModel):
    """
    Settings of one schemamcp server.

    ``wrap_entities_to_actions`` exposes every resource as entity tools as
    well; ``@mcp.wrap.tools`` switches this per entity. ``wrap_entity_modes``
    are the tool modes used when an entity does not set ``@mcp.wrap.modes``.
    """

    name: str = "schemamcp-server"
    version: str = "1.0.0"
    auth: Literal["inherit", "none"] = "inherit"
    capabilities: Capabilities = Field(default_factory=Capabilities)
    wrap_entities_to_actions: bool = False
    wrap_entity_modes: tuple[OperationMode, ...] = (OperationMode.QUERY, OperationMode.GET)
    instructions: str | None = None
    timeout_ms: int = Field(default=DEFAULT_TIMEOUT_MS, gt=0)
    resource_default_top: int = Field(default=RESOURCE_DEFAULT_TOP, ge=1, le=1000)
    log_level: str = "INFO"
    log_format: Literal["json", "text"] = "json"

    model_config = {"frozen": True}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "McpConfig":
        return cls.model_validate(dict(data or {}))

    @classmethod
    def from_env(
        cls,
        prefix: str = "SCHEMAMCP_",
        environ: Mapping[str, str] | None = None,
    ) -> "McpConfig":
        """
        Read settings from ``<prefix><FIELD>`` variables.

        List and object values are given as JSON, for example
        ``SCHEMAMCP_WRAP_ENTITY_MODES='["query","get","create"]'``.
        """
        environ = os.environ if environ is None else environ
        data: dict[str, Any] = {}
        for name in cls.model_fields:
            raw = environ.get(f"{prefix}{name.upper()}")
            if raw is None:
                continue
            if name in _TEXT_FIELDS:
                data[name] = raw
            else:
                try:
                    data[name] = json.loads(raw)
                except json.JSONDecodeError:
                    data[name] = raw
        return cls.model_validate(data)

    def configure_logging(self, output: TextIO | None = None) -> None:
        """Set up the ``schemamcp`` log handler from ``log_level``/``log_format``."""
        configure_logging(level=self.log_level, format=self.log_format, output=output)
