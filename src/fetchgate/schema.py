"""
Schema definitions for fetchgate.

This module defines the models used throughout fetchgate:
- RequestContext: The outbound request a policy sees and may rewrite
- Decision: A policy handler's verdict (allow/deny + reason)
- EvaluationResult: What the policy engine concluded for one request
- HttpResponse/GatewayResult: The normalized outcome of a gateway call
- PolicyManifest/PolicyRule: The on-disk policy directory formats

Design Decisions:
    - Wire-facing models serialize with camelCase aliases (matchedPolicy, ...)
    - RequestContext is mutable: handlers rewrite it in place
    - Everything else is frozen once built
"""

from collections.abc import Mapping
from typing import Any, Literal
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


HttpMethod = Literal["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]

HTTP_METHODS: tuple[str, ...] = ("GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS")


# =============================================================================
# Request Models
# =============================================================================


class RequestContext(BaseModel):
    """
    An outbound request on its way through the pipeline.

    A policy handler receives the context by reference and may rewrite any
    field in place. Whatever the context holds after evaluation is what gets
    executed.

    Attributes:
        url: The full target URL (scheme, host, path and query)
        method: HTTP method
        headers: Outgoing request headers
        body: Optional request body (string or JSON-serializable value)
        query_params: Extra query parameters appended to the URL
    """

    model_config = ConfigDict(
        extra="forbid",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    url: str
    method: str
    headers: dict[str, str] = Field(default_factory=dict)
    body: Any | None = None
    query_params: dict[str, str] = Field(default_factory=dict)

    def clone(self) -> "RequestContext":
        """Return a deep copy that shares nothing with this context."""
        return self.model_copy(deep=True)


class ExecuteHttpParams(BaseModel):
    """
    Arguments accepted by the execute-http operation.

    Validated at the edge so the pipeline only ever sees absolute http(s)
    URLs and known methods.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    url: str = Field(
        ...,
        description="The full URL to call (e.g. https://api.example.com/users/123)",
    )
    method: HttpMethod = Field(..., description="HTTP method")
    headers: dict[str, str] | None = Field(
        default=None,
        description="HTTP headers to include",
    )
    body: Any | None = Field(
        default=None,
        description="Request body (JSON-encoded unless already a string)",
    )
    query_params: dict[str, str] | None = Field(
        default=None,
        description="Query parameters to append to the URL",
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Require an absolute http or https URL."""
        parsed = urlparse(v)
        if parsed.scheme not in ("http", "https"):
            msg = f"url must use http or https: {v}"
            raise ValueError(msg)
        if not parsed.netloc:
            msg = f"url must have a host: {v}"
            raise ValueError(msg)
        return v

    def to_context(self) -> RequestContext:
        """Build a fresh RequestContext owned by a single request."""
        return RequestContext(
            url=self.url,
            method=self.method,
            headers=dict(self.headers or {}),
            body=self.body,
            query_params=dict(self.query_params or {}),
        )


# =============================================================================
# Decision Models
# =============================================================================


class Decision(BaseModel):
    """
    A policy handler's verdict on one request.

    Handlers may return a plain bool, a Decision, a mapping with an
    "allowed" key, or any object with an ``allowed`` attribute. All of
    these are normalized to a Decision by ``Decision.coerce`` as soon as
    the handler returns.

    Attributes:
        allowed: Whether the request may proceed
        reason: Optional explanation, used as the error on denial
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    allowed: bool
    reason: str | None = None

    @classmethod
    def allow(cls) -> "Decision":
        """Create an ALLOW decision."""
        return cls(allowed=True)

    @classmethod
    def deny(cls, reason: str | None = None) -> "Decision":
        """Create a DENY decision."""
        return cls(allowed=False, reason=reason)

    @classmethod
    def coerce(cls, value: Any) -> "Decision":
        """
        Normalize a handler's return value.

        Raises:
            TypeError: If the value has neither shape
        """
        if isinstance(value, Decision):
            return value
        if isinstance(value, bool):
            return cls(allowed=value)
        if isinstance(value, Mapping):
            if "allowed" not in value:
                msg = "decision mapping has no 'allowed' key"
                raise TypeError(msg)
            reason = value.get("reason")
            return cls(
                allowed=bool(value["allowed"]),
                reason=str(reason) if reason else None,
            )
        if hasattr(value, "allowed"):
            reason = getattr(value, "reason", None)
            return cls(allowed=bool(value.allowed), reason=str(reason) if reason else None)

        msg = f"handler returned unsupported decision type {type(value).__name__}"
        raise TypeError(msg)


# =============================================================================
# Result Models
# =============================================================================


class WireModel(BaseModel):
    """Base for models returned to remote callers (camelCase on the wire)."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    def to_wire(self) -> dict[str, Any]:
        """Serialize for a JSON response."""
        return self.model_dump(mode="json", by_alias=True)


class PolicySummary(WireModel):
    """
    The public face of a policy.

    Never carries the handler or the file the policy came from.
    """

    title: str
    description: str
    pattern: str


class HttpResponse(WireModel):
    """
    A normalized upstream response.

    Attributes:
        status: HTTP status code
        status_text: Reason phrase
        headers: Response headers (lower-case names)
        body: Decoded JSON value for JSON responses, otherwise text
    """

    status: int
    status_text: str
    headers: dict[str, str] = Field(default_factory=dict)
    body: Any = None


class GatewayResult(WireModel):
    """
    Outcome of one execute-http call.

    Three shapes:
        - denied:   allowed=False, error set, response None
        - failed:   allowed=True, error set, response None
        - executed: allowed=True, error None, response set
    """

    allowed: bool
    matched_policy: PolicySummary | None = None
    response: HttpResponse | None = None
    error: str | None = None
    error_code: int | None = None

    @property
    def succeeded(self) -> bool:
        """True when the request was authorized and a response came back."""
        return self.allowed and self.error is None


class PolicyListing(WireModel):
    """Result of list-policies and reload-policies."""

    message: str
    policies: list[PolicySummary] = Field(default_factory=list)


# =============================================================================
# Policy Directory Models
# =============================================================================


class PolicyManifest(BaseModel):
    """
    The manifest file of a policy directory.

    Lists policy files relative to the directory. Order is significant:
    the first matching policy wins, so the list is kept exactly as written.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    middlewares: list[str] = Field(
        ...,
        description="Policy filenames in evaluation order",
    )


class PolicyRule(BaseModel):
    """
    A declarative policy definition, as stored in a policy file.

    Attributes:
        title: Display name, also used in denial messages
        description: What the policy permits
        pattern: URL glob (``*`` = one segment, ``**`` = anything)
        allow_methods: If set, only these methods are allowed
        deny: Deny every request this policy matches
        reason: Reason reported with a deny or method denial
        set_headers: Headers set on the request (``${VAR}`` expands from env)
        remove_headers: Headers removed before set_headers is applied
        set_query_params: Query parameters added (``${VAR}`` expands from env)
        handler: Optional ``module:callable`` plugin making the final decision
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    title: str = Field(..., min_length=1)
    description: str
    pattern: str = Field(..., min_length=1)
    allow_methods: list[str] | None = None
    deny: bool = False
    reason: str | None = None
    set_headers: dict[str, str] = Field(default_factory=dict)
    remove_headers: list[str] = Field(default_factory=list)
    set_query_params: dict[str, str] = Field(default_factory=dict)
    handler: str | None = None

    @field_validator("allow_methods")
    @classmethod
    def validate_methods(cls, v: list[str] | None) -> list[str] | None:
        """Upper-case methods and reject unknown ones."""
        if v is None:
            return v
        methods = [m.upper() for m in v]
        unknown = sorted(set(methods) - set(HTTP_METHODS))
        if unknown:
            msg = f"Unknown methods: {', '.join(unknown)}"
            raise ValueError(msg)
        return methods

    @field_validator("handler")
    @classmethod
    def validate_handler(cls, v: str | None) -> str | None:
        """Handler references look like ``package.module:attribute``."""
        if v is None:
            return v
        module, sep, attr = v.partition(":")
        if not sep or not module or not attr:
            msg = f"Invalid handler reference: {v}. Expected 'package.module:callable'"
            raise ValueError(msg)
        return v
