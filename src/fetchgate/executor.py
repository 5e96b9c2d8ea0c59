"""
Request executor for fetchgate.

Sends a request that the policy engine has already approved and
normalizes the upstream response.

Security Note:
    Policy enforcement happens BEFORE execute() is called. The executor
    trusts the context it is given, including any headers a policy added.

Behaviour:
    - queryParams are appended to the URL (existing keys are kept, so
      duplicates are possible)
    - GET and HEAD never carry a body
    - Non-string bodies are JSON-encoded; Content-Type: application/json is
      added unless a "Content-Type" or "content-type" header is present
    - Structured bodies are encoded compactly (no spaces after separators)
    - JSON responses are decoded, falling back to text if decoding fails
      (NaN and Infinity count as failures)
    - Redirects are followed, whichever client sends the request
    - Any failure is reported as an execution failure with allowed=True,
      keeping it distinct from a policy denial
"""

import json
from typing import Any

import httpx

from fetchgate.errors import ExecutionFailedError
from fetchgate.logging_config import get_logger
from fetchgate.policy.models import Policy
from fetchgate.schema import GatewayResult, HttpResponse, RequestContext

DEFAULT_TIMEOUT_SECONDS = 30.0

BODYLESS_METHODS = {"GET", "HEAD"}

logger = get_logger(__name__)


def _reject_constant(name: str) -> Any:
    # NaN and Infinity are not JSON.
    msg = f"invalid JSON constant: {name}"
    raise ValueError(msg)


def build_url(context: RequestContext) -> httpx.URL:
    """Parse the context URL and append its query parameters."""
    url = httpx.URL(context.url)
    for key, value in context.query_params.items():
        url = url.copy_add_param(key, value)
    return url


def build_body(context: RequestContext, headers: dict[str, str]) -> str | bytes | None:
    """
    Serialize the context body for sending.

    May add a Content-Type header to ``headers``.

    Raises:
        TypeError/ValueError: If a structured body is not JSON-serializable
    """
    if context.body is None or context.method.upper() in BODYLESS_METHODS:
        return None

    if isinstance(context.body, (str, bytes)):
        return context.body

    content = json.dumps(context.body, separators=(",", ":"))
    if "Content-Type" not in headers and "content-type" not in headers:
        headers["Content-Type"] = "application/json"
    return content


def read_response(response: httpx.Response) -> HttpResponse:
    """Normalize an httpx response."""
    content_type = response.headers.get("content-type", "")
    body: Any
    if "application/json" in content_type:
        try:
            body = json.loads(response.content, parse_constant=_reject_constant)
        except ValueError:
            body = response.text
    else:
        body = response.text

    return HttpResponse(
        status=response.status_code,
        status_text=response.reason_phrase,
        headers=dict(response.headers.items()),
        body=body,
    )


class RequestExecutor:
    """
    Executes approved requests over HTTP.

    Usage:
        executor = RequestExecutor(timeout=10)
        result = await executor.execute(context, policy)
        if result.succeeded:
            data = result.response.body

    Attributes:
        timeout: Seconds allowed per request, or None for no limit
    """

    def __init__(
        self,
        timeout: float | None = DEFAULT_TIMEOUT_SECONDS,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize the executor.

        Args:
            timeout: Seconds allowed per request, or None for no limit
            client: Shared client to send through. If omitted, a client is
                created per request.
        """
        self.timeout = timeout
        self._client = client

    async def execute(self, context: RequestContext, policy: Policy) -> GatewayResult:
        """
        Send a request and normalize its response.

        Args:
            context: The approved (and possibly rewritten) request
            policy: The policy that approved it

        Returns:
            GatewayResult with the response, or with error set on failure
        """
        try:
            url = build_url(context)
            headers = dict(context.headers)
            content = build_body(context, headers)
            request_kwargs: dict[str, Any] = {
                "method": context.method,
                "url": url,
                "headers": headers,
                "content": content,
                "timeout": self.timeout,
                "follow_redirects": True,
            }

            if self._client is not None:
                response = await self._client.request(**request_kwargs)
            else:
                async with httpx.AsyncClient(follow_redirects=True) as client:
                    response = await client.request(**request_kwargs)

            normalized = read_response(response)

        except Exception as e:
            error = ExecutionFailedError(reason=str(e) or type(e).__name__, url=context.url)
            logger.warning(
                "request_failed",
                policy=policy.title,
                url=context.url,
                error=error.reason,
                error_type=type(e).__name__,
            )
            return GatewayResult(
                allowed=True,
                matched_policy=policy.summary(),
                error=error.message,
                error_code=error.code,
            )

        logger.info(
            "request_executed",
            policy=policy.title,
            method=context.method,
            url=context.url,
            status=normalized.status,
        )
        return GatewayResult(
            allowed=True,
            matched_policy=policy.summary(),
            response=normalized,
        )
