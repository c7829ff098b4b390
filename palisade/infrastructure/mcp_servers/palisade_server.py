"""
MCP Server Infrastructure

Architectural Intent:
- MCP server exposing the security policy actions
- Tools = write operations (commands)
- Resources = read operations (queries)

MCP Integration:
- Exposed as 'palisade-service' MCP server
- Tools: calc-security-policies, apply-security-policies
- Resources: resource-types://registered
"""

from typing import Any, Callable, Awaitable, Optional
from dataclasses import dataclass
import json
import logging

from palisade.application.dtos.security_policy_dtos import (
    ApplySecurityPoliciesRequest,
    CalcSecurityPoliciesRequest,
)
from palisade.domain.exceptions import ValidationError

logger = logging.getLogger(__name__)

_IP_LIST_SCHEMA = {"type": "array", "items": {"type": "string"}}
_POLICY_LIST_SCHEMA = {"type": "array", "items": {"type": "object"}}


@dataclass
class MCPTool:
    name: str
    description: str
    input_schema: dict[str, Any]
    handler: Callable[..., Awaitable[dict[str, Any]]]


@dataclass
class MCPResource:
    uri: str
    description: str
    handler: Callable[..., Awaitable[str]]


class MCPError(Exception):
    """Structured MCP error."""

    def __init__(self, code: str, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.code = code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": {
                "code": self.code,
                "message": str(self),
                "details": self.details,
            }
        }


class MCPServer:
    """
    Registry of named tools and resources with async handlers.

    call_tool() turns ValidationError into an "invalid_params" error and
    any other failure into "internal_error".
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._tools: dict[str, MCPTool] = {}
        self._resources: dict[str, MCPResource] = {}

    def tool(
        self,
        name: str,
        description: str = "",
        input_schema: Optional[dict[str, Any]] = None,
    ) -> Callable[[Callable[..., Awaitable[dict[str, Any]]]], MCPTool]:
        def decorator(handler: Callable[..., Awaitable[dict[str, Any]]]) -> MCPTool:
            tool = MCPTool(
                name=name,
                description=description,
                input_schema=input_schema or {},
                handler=handler,
            )
            self._tools[name] = tool
            return tool

        return decorator

    def resource(
        self, uri: str, description: str = ""
    ) -> Callable[[Callable[..., Awaitable[str]]], MCPResource]:
        def decorator(handler: Callable[..., Awaitable[str]]) -> MCPResource:
            resource = MCPResource(uri=uri, description=description, handler=handler)
            self._resources[uri] = resource
            return resource

        return decorator

    async def list_tools(self) -> list[MCPTool]:
        return list(self._tools.values())

    async def list_resources(self) -> list[MCPResource]:
        return list(self._resources.values())

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> dict[str, Any]:
        if name not in self._tools:
            raise MCPError("tool_not_found", f"Tool '{name}' not found")
        try:
            return await self._tools[name].handler(**arguments)
        except MCPError:
            raise
        except ValidationError as e:
            raise MCPError("invalid_params", str(e))
        except Exception as e:
            logger.exception("Tool %s failed", name)
            raise MCPError("internal_error", str(e))

    async def read_resource(self, uri: str) -> str:
        if uri not in self._resources:
            raise MCPError("resource_not_found", f"Resource '{uri}' not found")
        return await self._resources[uri].handler()


def create_palisade_server(
    calculate_use_case: Any = None,
    apply_use_case: Any = None,
    registry: Any = None,
) -> MCPServer:
    """Build the 'palisade-service' server; tools are only registered when wired."""
    server = MCPServer("palisade-service")

    if calculate_use_case:

        @server.tool(
            name="calc-security-policies",
            description=(
                "Resolve source and destination IPs to managed resources and "
                "compute the per-resource security policies, without applying them"
            ),
            input_schema={
                "type": "object",
                "properties": {
                    "protocol": {
                        "type": "string",
                        "description": "TCP, UDP, ICMP, ICMPv6, GRE or ALL",
                    },
                    "source_ips": _IP_LIST_SCHEMA,
                    "dest_ips": _IP_LIST_SCHEMA,
                    "dest_port": {
                        "type": "string",
                        "description": "ALL, a port, a comma list or a range like 8000-8080",
                    },
                    "policy_action": {"type": "string", "enum": ["accept", "drop"]},
                    "policy_directions": {
                        "type": "array",
                        "items": {"type": "string", "enum": ["ingress", "egress"]},
                    },
                    "description": {"type": "string"},
                },
                "required": [
                    "protocol",
                    "source_ips",
                    "dest_ips",
                    "dest_port",
                    "policy_action",
                    "policy_directions",
                ],
            },
        )
        async def calc_security_policies(**arguments: Any) -> dict[str, Any]:
            request = CalcSecurityPoliciesRequest.from_dict(arguments)
            response = await calculate_use_case.execute(request)
            return response.to_dict()

    if apply_use_case:

        @server.tool(
            name="apply-security-policies",
            description=(
                "Place calculated policies into security groups, creating and "
                "binding overflow groups when needed"
            ),
            input_schema={
                "type": "object",
                "properties": {
                    "ingress_policies": _POLICY_LIST_SCHEMA,
                    "egress_policies": _POLICY_LIST_SCHEMA,
                },
            },
        )
        async def apply_security_policies(**arguments: Any) -> dict[str, Any]:
            request = ApplySecurityPoliciesRequest.from_dict(arguments)
            response = await apply_use_case.execute(request)
            return response.to_dict()

    if registry:

        @server.resource(
            uri="resource-types://registered",
            description="Registered resource kinds and their capabilities",
        )
        async def get_resource_types() -> str:
            return json.dumps(
                {
                    "resource_types": [
                        {
                            "kind": rt.kind,
                            "is_load_balancer": rt.is_load_balancer,
                            "supports_egress_policy": rt.supports_egress_policy,
                            "supports_security_group_api": rt.supports_security_group_api,
                        }
                        for rt in registry.all()
                    ]
                }
            )

    return server
