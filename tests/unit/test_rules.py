"""
Unit tests for declarative policy files.

Tests cover:
- Method allowlists and deny rules
- Header and query parameter rewrites
- ${VAR} expansion from the environment
- Plugin handlers resolved from installed modules
"""

import json
from pathlib import Path

import pytest

from fetchgate.errors import PolicyFileMissingError, PolicyInvalidError
from fetchgate.policy.rules import build_handler, expand_env, load_policy_file, resolve_handler
from fetchgate.schema import Decision, PolicyRule, RequestContext


def make_rule(**overrides) -> PolicyRule:
    data = {
        "title": "Example API",
        "description": "Example",
        "pattern": "https://api.example.com/**",
    }
    data.update(overrides)
    return PolicyRule.model_validate(data)


def context(method: str = "GET", **kwargs) -> RequestContext:
    return RequestContext(url="https://api.example.com/users", method=method, **kwargs)


class TestRuleDecisions:
    """Tests for allow/deny logic of generated handlers."""

    def test_no_restrictions_allows(self) -> None:
        """A rule with no restrictions allows everything it matches."""
        assert build_handler(make_rule())(context()) is True

    def test_deny_rule(self) -> None:
        """deny: true denies with the configured reason."""
        handler = build_handler(make_rule(deny=True, reason="Blocked."))

        assert handler(context()) == Decision.deny("Blocked.")

    def test_method_not_allowed(self) -> None:
        """Methods outside allow_methods are denied with a listing."""
        handler = build_handler(make_rule(allow_methods=["get", "post", "patch"]))

        decision = handler(context("DELETE"))

        assert decision.allowed is False
        assert decision.reason == (
            "Method DELETE is not allowed. Only GET, POST, PATCH are permitted."
        )

    def test_method_denial_uses_reason(self) -> None:
        """A configured reason replaces the generated message."""
        handler = build_handler(make_rule(allow_methods=["GET"], reason="Read-only."))

        assert handler(context("POST")).reason == "Read-only."

    def test_denied_request_not_rewritten(self) -> None:
        """Rewrites only happen for requests that pass the checks."""
        handler = build_handler(make_rule(allow_methods=["GET"], set_headers={"X-Key": "k"}))
        ctx = context("POST")

        handler(ctx)

        assert ctx.headers == {}


class TestRewrites:
    """Tests for in-place request rewrites."""

    def test_set_headers(self) -> None:
        """set_headers adds headers and replaces any casing of the same name."""
        handler = build_handler(make_rule(set_headers={"User-Agent": "SecureFetch/1.0"}))
        ctx = context(headers={"user-agent": "curl", "Accept": "*/*"})

        handler(ctx)

        assert ctx.headers == {"Accept": "*/*", "User-Agent": "SecureFetch/1.0"}

    def test_remove_headers(self) -> None:
        """remove_headers is case-insensitive."""
        handler = build_handler(make_rule(remove_headers=["cookie"]))
        ctx = context(headers={"Cookie": "session=1", "Accept": "*/*"})

        handler(ctx)

        assert ctx.headers == {"Accept": "*/*"}

    def test_set_query_params(self) -> None:
        """set_query_params adds parameters to the context."""
        handler = build_handler(make_rule(set_query_params={"api_key": "abc"}))
        ctx = context(query_params={"page": "2"})

        handler(ctx)

        assert ctx.query_params == {"page": "2", "api_key": "abc"}

    def test_env_expansion(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """${VAR} is read from the environment when the request is handled."""
        handler = build_handler(make_rule(set_headers={"Authorization": "Bearer ${FG_TEST_TOKEN}"}))
        monkeypatch.setenv("FG_TEST_TOKEN", "s3cret")
        ctx = context()

        handler(ctx)

        assert ctx.headers["Authorization"] == "Bearer s3cret"

    def test_missing_env_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """An unset variable makes the handler fail."""
        monkeypatch.delenv("FG_TEST_MISSING", raising=False)
        handler = build_handler(make_rule(set_headers={"X-Key": "${FG_TEST_MISSING}"}))

        with pytest.raises(LookupError, match="FG_TEST_MISSING is not set"):
            handler(context())


class TestExpandEnv:
    """Tests for ${VAR} expansion."""

    def test_multiple_references(self) -> None:
        """All references are replaced."""
        env = {"A": "1", "B": "2"}
        assert expand_env("${A}-${B}-${A}", env) == "1-2-1"

    def test_plain_dollar_untouched(self) -> None:
        """Only the ${NAME} form is expanded."""
        assert expand_env("$A and ${", {"A": "x"}) == "$A and ${"


class TestPluginHandlers:
    """Tests for handler references to installed code."""

    @pytest.fixture
    def plugin_module(self, temp_dir: Path, monkeypatch: pytest.MonkeyPatch) -> str:
        """Write an importable plugin module and return its name."""
        (temp_dir / "fg_test_plugins.py").write_text(
            "def only_admins(context):\n"
            "    return {'allowed': context.headers.get('X-Role') == 'admin', 'reason': 'admins only'}\n"
            "\n"
            "async def tag(context):\n"
            "    context.headers['X-Tagged'] = 'yes'\n"
            "    return True\n"
            "\n"
            "NOT_CALLABLE = 3\n"
        )
        monkeypatch.syspath_prepend(str(temp_dir))
        return "fg_test_plugins"

    def test_resolve_handler(self, plugin_module: str) -> None:
        """A module:callable reference resolves to the callable."""
        handler = resolve_handler(f"{plugin_module}:only_admins")
        assert callable(handler)

    def test_resolve_not_callable(self, plugin_module: str) -> None:
        """Non-callable attributes are rejected."""
        with pytest.raises(TypeError):
            resolve_handler(f"{plugin_module}:NOT_CALLABLE")

    def test_resolve_missing_attribute(self, plugin_module: str) -> None:
        """Missing attributes raise AttributeError."""
        with pytest.raises(AttributeError):
            resolve_handler(f"{plugin_module}:nope")

    def test_plugin_decides_after_rewrites(self, plugin_module: str) -> None:
        """The plugin sees the rewritten context and makes the decision."""
        plugin = resolve_handler(f"{plugin_module}:only_admins")
        handler = build_handler(make_rule(set_headers={"X-Role": "admin"}), plugin)

        assert handler(context()) == {"allowed": True, "reason": "admins only"}

    def test_plugin_policy_file(self, plugin_module: str, make_policy_dir) -> None:
        """A policy file can name a plugin handler."""
        directory = make_policy_dir(
            {
                "tag.json": {
                    "title": "Tagger",
                    "description": "Tags requests",
                    "pattern": "https://api.example.com/**",
                    "handler": f"{plugin_module}:tag",
                }
            }
        )

        policy = load_policy_file(directory.resolve(), "tag.json")

        assert policy.title == "Tagger"
        assert policy.matches("https://api.example.com/users")


class TestLoadPolicyFile:
    """Tests for reading a single policy file."""

    def test_missing_file(self, temp_dir: Path) -> None:
        """A missing file raises PolicyFileMissingError."""
        with pytest.raises(PolicyFileMissingError) as exc_info:
            load_policy_file(temp_dir.resolve(), "missing.yaml")

        assert exc_info.value.filename == "missing.yaml"

    def test_invalid_reason_lists_fields(self, temp_dir: Path) -> None:
        """Validation failures name the offending fields."""
        (temp_dir / "bad.json").write_text(json.dumps({"title": "T"}))

        with pytest.raises(PolicyInvalidError) as exc_info:
            load_policy_file(temp_dir.resolve(), "bad.json")

        assert "description" in exc_info.value.reason
        assert "pattern" in exc_info.value.reason
