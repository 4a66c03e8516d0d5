"""
Error taxonomy for schemamcp.

Every error carries a stable ``code`` for programmatic handling, a readable
message and optional retry hints an agent can use to correct its call.
``to_dict()`` renders the structured error envelope returned to callers:
``{"error": CODE, "message": str, ...extra}``.
"""

from typing import Any


class SchemaMcpError(Exception):
    """
    Base class for all schemamcp errors.

    Attributes:
        code: Stable error code
        message: Human-readable message
        retry_hints: Suggestions the caller can act on
        details: Extra fields merged into the error envelope
    """

    code: str = "SCHEMA_MCP_ERROR"

    def __init__(
        self,
        message: str,
        *,
        retry_hints: list[str] | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.retry_hints = retry_hints or []
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"error": self.code, "message": self.message}
        result.update(self.details)
        if self.retry_hints:
            result["retry_hints"] = self.retry_hints
        return result


# --- Configuration errors (schema load time) ---


class ModelLoadError(SchemaMcpError):
    """The schema model document could not be read."""

    code = "MODEL_LOAD_ERROR"


class AnnotationError(SchemaMcpError):
    """An annotated definition is malformed and cannot be exposed."""

    code = "INVALID_ANNOTATION"

    def __init__(self, target: str, reason: str, **kwargs: Any) -> None:
        self.target = target
        super().__init__(
            f"Invalid annotation '{target}' - {reason}",
            details={"target": target},
            **kwargs,
        )


class UnresolvableTypeReferenceError(AnnotationError):
    """A type reference points at nothing that carries a type."""

    code = "UNRESOLVABLE_TYPE_REFERENCE"

    def __init__(self, target: str, reference: Any) -> None:
        self.reference = reference
        super().__init__(target, f"Failed to parse nested type reference: {reference!r}")


class CyclicTypeReferenceError(AnnotationError):
    """Type references loop back onto themselves."""

    code = "CYCLIC_TYPE_REFERENCE"

    def __init__(self, target: str, path: list[str]) -> None:
        self.path = path
        super().__init__(target, f"Cyclic type reference: {' -> '.join(path)}")


class BoundOperationError(SchemaMcpError):
    """
    A bound operation was built without entity key metadata.

    Raised while building the annotation model and never caught: the schema
    itself has to be fixed.
    """

    code = "INVALID_BOUND_OPERATION"


# --- Request errors ---


class InvalidInputError(SchemaMcpError):
    """Tool arguments failed validation."""

    code = "INVALID_INPUT"

    def __init__(self, issues: list[dict[str, Any]], message: str | None = None) -> None:
        super().__init__(
            message or "Input does not match the tool schema",
            details={"issues": issues},
        )


class MissingServiceError(SchemaMcpError):
    code = "ERR_MISSING_SERVICE"

    def __init__(self, service: str) -> None:
        super().__init__(
            f"Service not found: {service}",
            details={"service": service},
        )


class MissingKeyError(SchemaMcpError):
    code = "MISSING_KEY"

    def __init__(self, key: str, keys: list[str] | None = None) -> None:
        super().__init__(
            f"Missing key field: {key}",
            retry_hints=[f"Provide all key fields: {', '.join(keys)}"] if keys else None,
        )


class NoFieldsError(SchemaMcpError):
    code = "NO_FIELDS"

    def __init__(self) -> None:
        super().__init__("No fields provided to update")


class FilterParseError(SchemaMcpError):
    code = "FILTER_PARSE_ERROR"


class NotFoundError(SchemaMcpError):
    """No tool, resource or prompt with the requested name is admitted."""

    code = "NOT_FOUND"


# --- Execution errors ---


class OperationTimeoutError(SchemaMcpError):
    code = "TIMEOUT"

    def __init__(self, label: str, timeout_ms: int) -> None:
        super().__init__(
            f"{label} timed out after {timeout_ms}ms",
            details={"timeout_ms": timeout_ms},
        )


class ExecutionError(SchemaMcpError):
    """The data layer rejected or failed an operation."""

    code = "EXECUTION_FAILED"

    def __init__(self, cause: BaseException | str, **kwargs: Any) -> None:
        message = cause if isinstance(cause, str) else str(cause) or type(cause).__name__
        super().__init__(message, **kwargs)


class QueryFailedError(ExecutionError):
    code = "QUERY_FAILED"


class GetFailedError(ExecutionError):
    code = "GET_FAILED"


class CreateFailedError(ExecutionError):
    code = "CREATE_FAILED"


class UpdateFailedError(ExecutionError):
    code = "UPDATE_FAILED"


class DeleteFailedError(ExecutionError):
    code = "DELETE_FAILED"


class DraftCreateFailedError(ExecutionError):
    code = "DRAFT_CREATE_FAILED"


class OperationFailedError(ExecutionError):
    code = "OPERATION_FAILED"
