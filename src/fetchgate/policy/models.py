"""
Runtime policy records.

- Policy: one loaded rule (pattern + handler)
- PolicySet: the ordered, immutable list of policies a store serves
- EvaluationResult: the policy engine's verdict for one request
"""

from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from fetchgate.errors import EvaluationError, LoadError
from fetchgate.policy.matcher import UrlPredicate, compile_pattern
from fetchgate.schema import PolicySummary, RequestContext

# Returns a decision, or an awaitable resolving to one.
PolicyHandler = Callable[[RequestContext], Any]


@dataclass(frozen=True)
class Policy:
    """
    A loaded policy.

    A Policy's identity is its position in the PolicySet. Policies are never
    edited after loading; a reload replaces the whole set.

    Attributes:
        title: Display name
        description: What the policy permits
        pattern: URL glob the policy applies to
        handler: Callable deciding (and possibly rewriting) a request
        source: File the policy was loaded from, if any
    """

    title: str
    description: str
    pattern: str
    handler: PolicyHandler = field(repr=False, compare=False)
    source: Path | None = field(default=None, compare=False)
    _matcher: UrlPredicate = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_matcher", compile_pattern(self.pattern))

    def matches(self, url: str) -> bool:
        """Return True if this policy's pattern covers the URL."""
        return self._matcher(url)

    def summary(self) -> PolicySummary:
        """Public view of this policy (no handler, no file path)."""
        return PolicySummary(
            title=self.title,
            description=self.description,
            pattern=self.pattern,
        )


@dataclass(frozen=True)
class PolicySet:
    """
    An ordered snapshot of policies.

    Attributes:
        policies: Policies in manifest order
        diagnostics: Problems found while loading (skipped files etc.)
        directory: The directory the set was loaded from
        loaded_at: When the load finished
    """

    policies: tuple[Policy, ...] = ()
    diagnostics: tuple[LoadError, ...] = ()
    directory: Path | None = None
    loaded_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def __iter__(self) -> Iterator[Policy]:
        return iter(self.policies)

    def __len__(self) -> int:
        return len(self.policies)

    def __bool__(self) -> bool:
        return bool(self.policies)

    def find(self, url: str) -> Policy | None:
        """Return the first policy matching the URL, in declared order."""
        for policy in self.policies:
            if policy.matches(url):
                return policy
        return None

    def summaries(self) -> list[PolicySummary]:
        """Public views of all policies, in order."""
        return [policy.summary() for policy in self.policies]


@dataclass(frozen=True)
class EvaluationResult:
    """
    The policy engine's verdict on one request.

    Attributes:
        allowed: Whether the request may be executed
        matched_policy: The policy that decided, if any matched
        error: Why the request was refused (set exactly when denied)
        error_code: Numeric code of the refusal
    """

    allowed: bool
    matched_policy: Policy | None = None
    error: str | None = None
    error_code: int | None = None

    @classmethod
    def allow(cls, policy: Policy) -> "EvaluationResult":
        """Create an ALLOW result."""
        return cls(allowed=True, matched_policy=policy)

    @classmethod
    def deny(cls, error: EvaluationError, policy: Policy | None = None) -> "EvaluationResult":
        """Create a DENY result from an evaluation error."""
        return cls(
            allowed=False,
            matched_policy=policy,
            error=error.message,
            error_code=error.code,
        )
