"""
Gateway for fetchgate.

The Gateway is the orchestration layer behind the three remote operations:

    execute-http     Authorize a request, then send it
    list-policies    Show which URL patterns are permitted
    reload-policies  Re-read the policy directory

Execution Flow (execute-http):
    1. Copy the caller's request into a fresh RequestContext
    2. Evaluate it against the current policy snapshot
    3. If denied: return the denial, nothing touches the network
    4. If allowed: execute the (possibly rewritten) context and return
       the normalized response or the execution failure

There are no retries at any step.
"""

from pathlib import Path

from fetchgate.executor import DEFAULT_TIMEOUT_SECONDS, RequestExecutor
from fetchgate.logging_config import get_logger
from fetchgate.policy import PolicyEngine, PolicySet, PolicyStore
from fetchgate.schema import (
    ExecuteHttpParams,
    GatewayResult,
    PolicyListing,
    RequestContext,
)

logger = get_logger(__name__)


class Gateway:
    """
    Policy-gated HTTP gateway.

    Usage:
        gateway = Gateway.from_directory("/etc/fetchgate/policies")
        result = await gateway.execute_http(
            ExecuteHttpParams(url="https://api.github.com/user", method="GET")
        )

    Attributes:
        store: Holds the active policy set
        engine: Authorizes requests
        executor: Sends authorized requests
    """

    def __init__(
        self,
        store: PolicyStore,
        engine: PolicyEngine | None = None,
        executor: RequestExecutor | None = None,
    ) -> None:
        """
        Initialize the gateway.

        Args:
            store: Policy store (loaded or not)
            engine: Policy engine; defaults to one over ``store``
            executor: Request executor; defaults to one with the default timeout
        """
        self.store = store
        self.engine = engine or PolicyEngine(store)
        self.executor = executor or RequestExecutor()

    @classmethod
    def from_directory(
        cls,
        directory: Path | str,
        timeout: float | None = DEFAULT_TIMEOUT_SECONDS,
    ) -> "Gateway":
        """Create a gateway and load its policy directory."""
        store = PolicyStore(directory)
        store.load()
        return cls(store, executor=RequestExecutor(timeout=timeout))

    async def execute_http(self, params: ExecuteHttpParams) -> GatewayResult:
        """
        Run a request through the policy engine and, if approved, send it.

        Args:
            params: The caller's request

        Returns:
            GatewayResult: a denial, an execution failure, or a response
        """
        context = params.to_context()
        return await self.process(context)

    async def process(self, context: RequestContext) -> GatewayResult:
        """
        Authorize and execute a context.

        The context is cloned first so the caller's value is never rewritten
        by a policy.
        """
        context = context.clone()

        evaluation = await self.engine.evaluate(context)
        if not evaluation.allowed or evaluation.matched_policy is None:
            matched = evaluation.matched_policy
            return GatewayResult(
                allowed=False,
                matched_policy=matched.summary() if matched else None,
                error=evaluation.error,
                error_code=evaluation.error_code,
            )

        return await self.executor.execute(context, evaluation.matched_policy)

    def list_policies(self) -> PolicyListing:
        """Describe the active policies (no handlers, no file paths)."""
        policy_set = self.store.current()
        if not policy_set:
            return PolicyListing(
                message="No policies configured. Add policy files to manifest.json.",
            )
        return PolicyListing(
            message=f"Found {len(policy_set)} policy(ies)",
            policies=policy_set.summaries(),
        )

    async def reload_policies(self) -> PolicyListing:
        """Reload the policy directory and describe the new set."""
        policy_set: PolicySet = await self.store.reload()
        logger.info(
            "policies_reloaded",
            count=len(policy_set),
            diagnostics=len(policy_set.diagnostics),
        )
        return PolicyListing(
            message=f"Reloaded {len(policy_set)} policy(ies)",
            policies=policy_set.summaries(),
        )
