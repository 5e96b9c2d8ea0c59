"""
Policy module for fetchgate.

This module implements the core security model: deny-by-default
authorization of outbound HTTP requests.

Key concepts:
    - Policy: A URL glob plus a handler that allows, denies or rewrites a request
    - PolicyStore: Loads the ordered policy set from a directory, reloads atomically
    - PolicyEngine: Picks the first matching policy and normalizes its decision
"""

from fetchgate.policy.engine import PolicyEngine
from fetchgate.policy.matcher import compile_pattern
from fetchgate.policy.models import EvaluationResult, Policy, PolicySet
from fetchgate.policy.store import MANIFEST_FILENAME, PolicyStore, load_policy_set

__all__ = [
    "MANIFEST_FILENAME",
    "EvaluationResult",
    "Policy",
    "PolicyEngine",
    "PolicySet",
    "PolicyStore",
    "compile_pattern",
    "load_policy_set",
]
