"""Tool requests and dispatch.

Each tool takes a flat JSON object of arguments. Requests are decoded
once, into a closed union of pydantic models keyed by the ``tool`` field,
and every decoding problem surfaces as ValidationFailure before any
network call is made.

Usage:
    dispatcher = ToolDispatcher()
    result = await dispatcher.call("verify-attestation", {
        "network": "testnet", "uid": "0x...",
    })
    print(result.to_dict())
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Annotated, Any, Awaitable, Callable, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator
from pydantic import ValidationError as PydanticValidationError

from rsk_attest import config as env_config
from rsk_attest.encoding import parse_schema_definition
from rsk_attest.errors import AttestationError, ValidationFailure
from rsk_attest.logging_config import LogCategory, event
from rsk_attest.models.network import NetworkName
from rsk_attest.service import AttestationService

log = logging.getLogger(__name__)

ADDRESS_PATTERN = r"^0x[0-9a-fA-F]{40}$"
UID_PATTERN = r"^0x[0-9a-fA-F]{64}$"
HEX_PATTERN = r"^0x(?:[0-9a-fA-F]{2})*$"
MAX_LIST_LIMIT = 1000
MAX_UINT64 = 2**64 - 1
MAX_UINT256 = 2**256 - 1


# ----------------------------------------------------------------------
# Requests
# ----------------------------------------------------------------------

class _ToolRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    network: NetworkName = Field(..., description="Blockchain network to use")


class IssueAttestationRequest(_ToolRequest):
    tool: Literal["issue-attestation"] = "issue-attestation"
    recipient: str = Field(
        ..., pattern=ADDRESS_PATTERN,
        description="Address receiving the attestation (0x...)",
    )
    schema_uid: str = Field(
        ..., alias="schema", pattern=UID_PATTERN,
        description="Schema UID to use for attestation",
    )
    data: str = Field(..., pattern=HEX_PATTERN, description="Encoded attestation data")
    expiration_time: int = Field(
        default=0, alias="expirationTime", ge=0, le=MAX_UINT64,
        description="Unix timestamp when attestation expires (0 for no expiration)",
    )
    revocable: bool = Field(default=True, description="Whether attestation can be revoked")
    ref_uid: Optional[str] = Field(
        default=None, alias="refUID", pattern=UID_PATTERN,
        description="Reference to another attestation UID",
    )
    value: str = Field(
        default="0", pattern=r"^[0-9]+$",
        description="Native value to send with attestation (in wei)",
    )

    @field_validator("value")
    @classmethod
    def _check_value(cls, value: str) -> str:
        if int(value) > MAX_UINT256:
            raise ValueError("value must fit in uint256")
        return value


class VerifyAttestationRequest(_ToolRequest):
    tool: Literal["verify-attestation"] = "verify-attestation"
    uid: str = Field(..., pattern=UID_PATTERN, description="Attestation UID to verify")


class ListAttestationsRequest(_ToolRequest):
    tool: Literal["list-attestations"] = "list-attestations"
    recipient: Optional[str] = Field(
        default=None, pattern=ADDRESS_PATTERN, description="Filter by recipient address",
    )
    attester: Optional[str] = Field(
        default=None, pattern=ADDRESS_PATTERN, description="Filter by attester address",
    )
    schema_uid: Optional[str] = Field(
        default=None, alias="schema", pattern=UID_PATTERN, description="Filter by schema UID",
    )
    limit: int = Field(
        default=10, ge=1, le=MAX_LIST_LIMIT,
        description="Maximum number of results to return",
    )


class CreateSchemaRequest(_ToolRequest):
    tool: Literal["create-schema"] = "create-schema"
    definition: str = Field(
        ..., alias="schema",
        description='Schema definition string (e.g., "string name,uint256 age")',
    )
    resolver_address: Optional[str] = Field(
        default=None, alias="resolverAddress", pattern=ADDRESS_PATTERN,
        description="Optional resolver contract address",
    )
    revocable: bool = Field(
        ..., description="Whether attestations using this schema can be revoked",
    )

    @field_validator("definition")
    @classmethod
    def _check_definition(cls, value: str) -> str:
        try:
            parse_schema_definition(value)
        except ValidationFailure as exc:
            raise ValueError(exc.message) from exc
        return value


class RevokeAttestationRequest(_ToolRequest):
    tool: Literal["revoke-attestation"] = "revoke-attestation"
    uid: str = Field(..., pattern=UID_PATTERN, description="Attestation UID to revoke")


ToolRequest = Annotated[
    Union[
        IssueAttestationRequest,
        VerifyAttestationRequest,
        ListAttestationsRequest,
        CreateSchemaRequest,
        RevokeAttestationRequest,
    ],
    Field(discriminator="tool"),
]

_REQUEST_ADAPTER: TypeAdapter[Any] = TypeAdapter(ToolRequest)

TOOL_DESCRIPTIONS: dict[str, tuple[str, type[_ToolRequest]]] = {
    "issue-attestation": (
        "Issue a new attestation on Rootstock network using RAS",
        IssueAttestationRequest,
    ),
    "verify-attestation": (
        "Verify an existing attestation by UID",
        VerifyAttestationRequest,
    ),
    "list-attestations": (
        "List attestations with optional filters",
        ListAttestationsRequest,
    ),
    "create-schema": (
        "Create a new attestation schema",
        CreateSchemaRequest,
    ),
    "revoke-attestation": (
        "Revoke an existing attestation",
        RevokeAttestationRequest,
    ),
}

# Prefix of the failure message when a tool fails after decoding.
FAILURE_MESSAGES: dict[str, str] = {
    "issue-attestation": "Failed to issue attestation",
    "verify-attestation": "Failed to verify attestation",
    "list-attestations": "Failed to list attestations",
    "create-schema": "Failed to create schema",
    "revoke-attestation": "Failed to revoke attestation",
}


def decode_request(name: str, arguments: dict[str, Any]) -> Any:
    """Decode raw tool arguments into the request model for ``name``."""
    if name not in TOOL_DESCRIPTIONS:
        raise ValidationFailure(f"Unknown tool: {name}")
    payload = {**arguments, "tool": name}
    try:
        return _REQUEST_ADAPTER.validate_python(payload)
    except PydanticValidationError as exc:
        raise ValidationFailure(_describe_errors(name, exc)) from exc


def _describe_errors(name: str, exc: PydanticValidationError) -> str:
    problems = []
    for error in exc.errors():
        loc = [str(part) for part in error["loc"]]
        if loc and loc[0] == name:
            loc = loc[1:]
        field = ".".join(loc) or "arguments"
        problems.append(f"{field}: {error['msg']}")
    return "; ".join(problems)


def tool_definitions() -> list[dict[str, Any]]:
    """Name, description and JSON Schema of every tool."""
    definitions = []
    for name, (description, model) in TOOL_DESCRIPTIONS.items():
        schema = model.model_json_schema(by_alias=True)
        schema.get("properties", {}).pop("tool", None)
        if "required" in schema:
            schema["required"] = [f for f in schema["required"] if f != "tool"]
        definitions.append({"name": name, "description": description, "inputSchema": schema})
    return definitions


# ----------------------------------------------------------------------
# Dispatch
# ----------------------------------------------------------------------

@dataclass(frozen=True)
class ToolResult:
    success: bool
    message: str
    data: Optional[dict[str, Any]] = None

    def to_dict(self) -> dict[str, Any]:
        return {"success": self.success, "message": self.message, "data": self.data}


ServiceFactory = Callable[[NetworkName], AttestationService]


def default_service_factory(network: NetworkName) -> AttestationService:
    """Live service for ``network`` from environment configuration."""
    return AttestationService.from_config(
        env_config.get_network_config(network),
        env_config.get_private_key(),
    )


class ToolDispatcher:
    """Decode, route and run tool calls against an AttestationService.

    Never raises for a failed call: every failure is reported as a
    ToolResult with ``success=False``. Arguments that cannot be decoded
    fail with "Tool execution failed: ..."; a decoded call that fails
    carries its tool's prefix, e.g. "Failed to verify attestation: ...".

    Each call builds its own service from the factory and closes it when
    the call finishes.
    """

    def __init__(self, service_factory: ServiceFactory = default_service_factory) -> None:
        self._service_factory = service_factory
        self._handlers: dict[type, Callable[[Any], Awaitable[ToolResult]]] = {
            IssueAttestationRequest: self._issue,
            VerifyAttestationRequest: self._verify,
            ListAttestationsRequest: self._list,
            CreateSchemaRequest: self._create_schema,
            RevokeAttestationRequest: self._revoke,
        }

    async def call(self, name: str, arguments: Optional[dict[str, Any]] = None) -> ToolResult:
        log.info(f"{name} command received", extra=event(LogCategory.CLI, {"tool": name}))
        try:
            request = decode_request(name, arguments or {})
        except AttestationError as exc:
            return self._failure(name, "Tool execution failed", exc)
        try:
            return await self._handlers[type(request)](request)
        except AttestationError as exc:
            return self._failure(name, FAILURE_MESSAGES[name], exc)

    def _failure(self, name: str, prefix: str, exc: AttestationError) -> ToolResult:
        log.error(
            f"{name} handler failed",
            extra=event(LogCategory.ERROR, {"code": exc.code, "error": exc.message}),
        )
        return ToolResult(False, f"{prefix}: {exc.message}")

    async def _issue(self, request: IssueAttestationRequest) -> ToolResult:
        async with self._service_factory(request.network) as service:
            receipt = await service.issue_attestation(
                request.schema_uid,
                request.recipient,
                request.data,
                expiration_time=request.expiration_time,
                revocable=request.revocable,
                ref_uid=request.ref_uid,
                value=int(request.value),
            )
        return ToolResult(True, "Attestation issued successfully", {
            **receipt.to_dict(),
            "network": request.network.value,
            "recipient": request.recipient,
            "schema": request.schema_uid,
        })

    async def _verify(self, request: VerifyAttestationRequest) -> ToolResult:
        async with self._service_factory(request.network) as service:
            verified = await service.verify_attestation(request.uid)
        if verified is None:
            return ToolResult(False, "Attestation not found")
        status = "is valid" if verified.is_valid else "is invalid/expired"
        return ToolResult(True, f"Attestation {status}", verified.to_dict())

    async def _list(self, request: ListAttestationsRequest) -> ToolResult:
        async with self._service_factory(request.network) as service:
            records = await service.list_attestations(
                recipient=request.recipient,
                attester=request.attester,
                schema_uid=request.schema_uid,
                limit=request.limit,
            )
        return ToolResult(True, f"Found {len(records)} attestations", {
            "attestations": [r.to_dict() for r in records],
            "count": len(records),
            "network": request.network.value,
        })

    async def _create_schema(self, request: CreateSchemaRequest) -> ToolResult:
        async with self._service_factory(request.network) as service:
            receipt = await service.create_schema(
                request.definition, request.resolver_address, request.revocable,
            )
        return ToolResult(True, "Schema created successfully", {
            **receipt.to_dict(),
            "network": request.network.value,
            "schema": request.definition,
            "revocable": request.revocable,
        })

    async def _revoke(self, request: RevokeAttestationRequest) -> ToolResult:
        async with self._service_factory(request.network) as service:
            receipt = await service.revoke_attestation(request.uid)
        return ToolResult(True, "Attestation revoked successfully", {
            "uid": request.uid,
            "txHash": receipt.tx_hash,
            "network": request.network.value,
        })
