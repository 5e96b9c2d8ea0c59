"""
Exception hierarchy for fetchgate.

All fetchgate exceptions inherit from FetchgateError, allowing callers to catch
all fetchgate-specific exceptions with a single except clause.

Exception Categories:
    - LoadError: A policy directory, manifest or policy file could not be used
    - EvaluationError: A request was not authorized by the policy engine
    - ExecutionFailedError: An authorized request failed on the wire
    - ConfigurationError / AuthenticationError: Process and caller setup

Only ConfigurationError and AuthenticationError ever escape to a caller.
Load errors are recorded as diagnostics on the loaded PolicySet, and
evaluation/execution errors become part of the returned result.
"""

from dataclasses import dataclass, field
from typing import Any


# =============================================================================
# Error Codes
# =============================================================================

# Load errors: 1xxx
ERROR_CONFIG_DIRECTORY_MISSING = 1001
ERROR_MANIFEST_MISSING = 1002
ERROR_MANIFEST_PARSE = 1003
ERROR_POLICY_FILE_MISSING = 1004
ERROR_POLICY_INVALID = 1005

# Evaluation errors: 2xxx
ERROR_NO_POLICIES_CONFIGURED = 2001
ERROR_NO_POLICY_MATCH = 2002
ERROR_POLICY_DENIED = 2003
ERROR_POLICY_FAULTED = 2004

# Execution errors: 3xxx
ERROR_EXECUTION_FAILED = 3001

# Surface errors: 4xxx
ERROR_CONFIGURATION = 4001
ERROR_AUTHENTICATION = 4002


# =============================================================================
# Base Exception
# =============================================================================


@dataclass
class FetchgateError(Exception):
    """
    Base exception for all fetchgate errors.

    Attributes:
        message: Human-readable error description
        code: Numeric error code for programmatic handling
        suggestion: Optional hint for how to resolve the error
        context: Optional dict with additional debugging info
    """

    message: str = ""
    code: int = 0
    suggestion: str | None = None
    context: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        """Format error for display."""
        parts = [f"[E{self.code}] {self.message}"]
        if self.suggestion:
            parts.append(f"\nSuggestion: {self.suggestion}")
        return "".join(parts)

    def __repr__(self) -> str:
        """Format error for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code}, "
            f"context={self.context!r})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "suggestion": self.suggestion,
            "context": self.context,
        }


# =============================================================================
# Load Errors
# =============================================================================


@dataclass
class LoadError(FetchgateError):
    """
    Base for problems found while loading a policy directory.

    Load errors never abort a load. The store records them as diagnostics
    and keeps whatever valid policies remain.
    """

    path: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        self.context.setdefault("path", self.path)


@dataclass
class ConfigDirectoryMissingError(LoadError):
    """Raised when the policy directory does not exist."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Config directory not found: {self.path}"
        if self.code == 0:
            self.code = ERROR_CONFIG_DIRECTORY_MISSING
        super().__post_init__()


@dataclass
class ManifestMissingError(LoadError):
    """Raised when the policy directory has no manifest file."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Manifest file not found: {self.path}"
        if self.code == 0:
            self.code = ERROR_MANIFEST_MISSING
        if not self.suggestion:
            self.suggestion = (
                'Create a manifest.json file with a "middlewares" array '
                "listing policy files in order."
            )
        super().__post_init__()


@dataclass
class ManifestParseError(LoadError):
    """Raised when the manifest is not a JSON object with a "middlewares" list."""

    reason: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Failed to parse manifest {self.path}: {self.reason}"
        if self.code == 0:
            self.code = ERROR_MANIFEST_PARSE
        super().__post_init__()
        self.context["reason"] = self.reason


@dataclass
class PolicyFileMissingError(LoadError):
    """Raised when a manifest entry names a file that does not exist."""

    filename: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Policy file not found: {self.filename}"
        if self.code == 0:
            self.code = ERROR_POLICY_FILE_MISSING
        super().__post_init__()
        self.context["filename"] = self.filename


@dataclass
class PolicyInvalidError(LoadError):
    """Raised when a policy file does not describe a usable policy."""

    filename: str = ""
    reason: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Invalid policy file: {self.filename} - {self.reason}"
        if self.code == 0:
            self.code = ERROR_POLICY_INVALID
        super().__post_init__()
        self.context.update({"filename": self.filename, "reason": self.reason})


# =============================================================================
# Evaluation Errors
# =============================================================================


@dataclass
class EvaluationError(FetchgateError):
    """
    Base for reasons a request was not authorized.

    The policy engine builds these to describe a denial; they are carried
    on the EvaluationResult and never raised out of evaluate().
    """


@dataclass
class NoPoliciesConfiguredError(EvaluationError):
    """The active policy set is empty."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = "no policies configured"
        if self.code == 0:
            self.code = ERROR_NO_POLICIES_CONFIGURED
        if not self.suggestion:
            self.suggestion = "List policy files in the manifest and reload"


@dataclass
class NoPolicyMatchError(EvaluationError):
    """No policy pattern matches the request URL."""

    url: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"no policy matches URL: {self.url}"
        if self.code == 0:
            self.code = ERROR_NO_POLICY_MATCH
        self.context["url"] = self.url


@dataclass
class PolicyDeniedError(EvaluationError):
    """The matched policy's handler denied the request."""

    title: str = ""
    reason: str | None = None

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = self.reason or f"{self.title} denied the request"
        if self.code == 0:
            self.code = ERROR_POLICY_DENIED
        self.context.update({"policy": self.title, "reason": self.reason})


@dataclass
class PolicyFaultedError(EvaluationError):
    """The matched policy's handler raised instead of returning a decision."""

    title: str = ""
    fault: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"{self.title} threw an error: {self.fault}"
        if self.code == 0:
            self.code = ERROR_POLICY_FAULTED
        self.context.update({"policy": self.title, "fault": self.fault})


# =============================================================================
# Execution Errors
# =============================================================================


@dataclass
class ExecutionFailedError(FetchgateError):
    """An authorized request failed while being built, sent or read."""

    reason: str = ""
    url: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"request failed: {self.reason}"
        if self.code == 0:
            self.code = ERROR_EXECUTION_FAILED
        self.context.update({"reason": self.reason, "url": self.url})


# =============================================================================
# Surface Errors
# =============================================================================


@dataclass
class ConfigurationError(FetchgateError):
    """Process configuration is missing or malformed. Fatal at startup."""

    setting: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if self.code == 0:
            self.code = ERROR_CONFIGURATION
        if self.setting:
            self.context["setting"] = self.setting


@dataclass
class AuthenticationError(FetchgateError):
    """An inbound call failed the bearer token check."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if self.code == 0:
            self.code = ERROR_AUTHENTICATION
