"""
Policy Engine for fetchgate.

The Policy Engine is the security boundary of fetchgate. Every outbound
request must be approved here before it reaches the network.

Design Principles:
    - Deny-by-default: A request is blocked unless a policy matches and allows it
    - First match wins: Policies are tried in manifest order, no specificity ranking
    - Fail-closed: A handler that raises is a denial, never a crash
    - Auditable: Every denial carries a reason and an error code

How it works:
    1. Take a snapshot of the store's current PolicySet
    2. Find the first policy whose pattern matches the URL
    3. Call its handler with the request context (which it may rewrite)
    4. Normalize whatever the handler returned to an EvaluationResult
"""

import inspect

from fetchgate.errors import (
    NoPoliciesConfiguredError,
    NoPolicyMatchError,
    PolicyDeniedError,
    PolicyFaultedError,
)
from fetchgate.logging_config import get_logger
from fetchgate.policy.models import EvaluationResult, PolicySet
from fetchgate.policy.store import PolicyStore
from fetchgate.schema import Decision, RequestContext

logger = get_logger(__name__)


class PolicyEngine:
    """
    Central policy evaluator for fetchgate.

    Usage:
        engine = PolicyEngine(store)
        result = await engine.evaluate(context)
        if result.allowed:
            # context now holds any rewrites the policy made
        else:
            # result.error explains the denial

    Attributes:
        store: The PolicyStore supplying the active policies
    """

    def __init__(self, store: PolicyStore) -> None:
        """
        Initialize the policy engine.

        Args:
            store: The store to read the current PolicySet from
        """
        self.store = store

    async def evaluate(self, context: RequestContext) -> EvaluationResult:
        """
        Evaluate a request against the current policies.

        The context is passed to the handler by reference, so rewrites made by
        the matched policy are visible to the caller afterwards. This method
        never raises for policy problems.

        Args:
            context: The request to authorize

        Returns:
            EvaluationResult indicating allow/deny with reason
        """
        return await self.evaluate_with(self.store.current(), context)

    async def evaluate_with(
        self,
        policy_set: PolicySet,
        context: RequestContext,
    ) -> EvaluationResult:
        """Evaluate against an explicit PolicySet snapshot."""
        if not policy_set:
            return EvaluationResult.deny(NoPoliciesConfiguredError())

        policy = policy_set.find(context.url)
        if policy is None:
            logger.info("request_denied", reason="no_policy_match", url=context.url)
            return EvaluationResult.deny(NoPolicyMatchError(url=context.url))

        try:
            outcome = policy.handler(context)
            if inspect.isawaitable(outcome):
                outcome = await outcome
            decision = Decision.coerce(outcome)
        except Exception as e:
            logger.error(
                "policy_handler_failed",
                policy=policy.title,
                error=str(e),
                error_type=type(e).__name__,
            )
            return EvaluationResult.deny(
                PolicyFaultedError(title=policy.title, fault=str(e)),
                policy,
            )

        if not decision.allowed:
            logger.info("request_denied", policy=policy.title, reason=decision.reason)
            return EvaluationResult.deny(
                PolicyDeniedError(title=policy.title, reason=decision.reason),
                policy,
            )

        logger.debug("request_allowed", policy=policy.title, method=context.method)
        return EvaluationResult.allow(policy)
