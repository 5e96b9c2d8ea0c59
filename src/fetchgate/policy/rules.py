"""
Declarative policy files.

A policy file is YAML or JSON describing one PolicyRule: a URL pattern,
optional method restrictions, and request rewrites (headers, query
parameters). Policy files are data, never code. Custom decision logic is
plugged in by naming an installed callable (``package.module:callable``),
which is imported like any other dependency rather than read from the
policy directory.

Example (``httpbin.yaml``):

    title: HTTPBin Test API
    description: Allows GET, POST and PATCH requests to httpbin.org.
    pattern: "https://httpbin.org/**"
    allow_methods: [GET, POST, PATCH]
    set_headers:
      User-Agent: SecureFetch/1.0
      Authorization: "Bearer ${HTTPBIN_TOKEN}"
"""

import importlib
import json
import os
import re
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from fetchgate.errors import PolicyFileMissingError, PolicyInvalidError
from fetchgate.policy.models import Policy, PolicyHandler
from fetchgate.schema import Decision, PolicyRule, RequestContext

POLICY_SUFFIXES = {".yaml", ".yml", ".json"}

_ENV_REF = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


def expand_env(value: str, environ: Mapping[str, str] | None = None) -> str:
    """
    Replace ``${NAME}`` references with environment values.

    Raises:
        LookupError: If a referenced variable is not set
    """
    env = os.environ if environ is None else environ

    def substitute(match: re.Match[str]) -> str:
        name = match.group(1)
        if name not in env:
            msg = f"environment variable {name} is not set"
            raise LookupError(msg)
        return env[name]

    return _ENV_REF.sub(substitute, value)


def resolve_handler(reference: str) -> Callable[[RequestContext], Any]:
    """
    Import a plugin handler from a ``package.module:callable`` reference.

    Raises:
        ImportError: If the module cannot be imported
        AttributeError: If the module has no such attribute
        TypeError: If the attribute is not callable
    """
    module_name, _, attr_path = reference.partition(":")
    target: Any = importlib.import_module(module_name)
    for attr in attr_path.split("."):
        target = getattr(target, attr)
    if not callable(target):
        msg = f"{reference} is not callable"
        raise TypeError(msg)
    return target


def _drop_header(headers: dict[str, str], name: str) -> None:
    for key in [k for k in headers if k.lower() == name.lower()]:
        del headers[key]


def build_handler(
    rule: PolicyRule,
    plugin: Callable[[RequestContext], Any] | None = None,
    environ: Mapping[str, str] | None = None,
) -> PolicyHandler:
    """
    Turn a rule into a handler.

    The handler checks the deny flag and the method allowlist, then rewrites
    the context in place (remove_headers, set_headers, set_query_params), and
    finally defers to the plugin, if any, for the decision.
    """

    def handle(context: RequestContext) -> Any:
        if rule.deny:
            return Decision.deny(rule.reason)

        if rule.allow_methods is not None and context.method.upper() not in rule.allow_methods:
            return Decision.deny(
                rule.reason
                or f"Method {context.method} is not allowed. "
                f"Only {', '.join(rule.allow_methods)} are permitted."
            )

        for name in rule.remove_headers:
            _drop_header(context.headers, name)
        for name, value in rule.set_headers.items():
            _drop_header(context.headers, name)
            context.headers[name] = expand_env(value, environ)
        for name, value in rule.set_query_params.items():
            context.query_params[name] = expand_env(value, environ)

        if plugin is not None:
            return plugin(context)
        return True

    return handle


def read_definition(path: Path) -> Any:
    """Parse a policy file according to its suffix."""
    text = path.read_text(encoding="utf-8")
    if path.suffix == ".json":
        return json.loads(text)
    return yaml.safe_load(text)


def load_policy_file(directory: Path, filename: str) -> Policy:
    """
    Load one manifest entry into a Policy.

    Args:
        directory: The (resolved) policy directory
        filename: Manifest entry, relative to the directory

    Returns:
        The loaded Policy

    Raises:
        PolicyFileMissingError: If the file does not exist
        PolicyInvalidError: If the file does not describe a usable policy
    """
    path = (directory / filename).resolve()

    try:
        path.relative_to(directory)
    except ValueError:
        raise PolicyInvalidError(
            path=str(path),
            filename=filename,
            reason="path is outside the policy directory",
        ) from None

    if not path.is_file():
        raise PolicyFileMissingError(path=str(path), filename=filename)

    if path.suffix not in POLICY_SUFFIXES:
        raise PolicyInvalidError(
            path=str(path),
            filename=filename,
            reason=f"unsupported file type {path.suffix or '(none)'}",
            suggestion=f"Use one of: {', '.join(sorted(POLICY_SUFFIXES))}",
        )

    try:
        data = read_definition(path)
    except (OSError, UnicodeDecodeError, ValueError, yaml.YAMLError) as e:
        raise PolicyInvalidError(path=str(path), filename=filename, reason=str(e)) from e

    if not isinstance(data, dict):
        raise PolicyInvalidError(
            path=str(path),
            filename=filename,
            reason="missing required fields",
        )

    try:
        rule = PolicyRule.model_validate(data)
    except ValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) or "?" for err in e.errors())
        raise PolicyInvalidError(
            path=str(path),
            filename=filename,
            reason=f"missing or invalid fields: {fields}",
        ) from e

    plugin = None
    if rule.handler is not None:
        try:
            plugin = resolve_handler(rule.handler)
        except (ImportError, AttributeError, TypeError) as e:
            raise PolicyInvalidError(
                path=str(path),
                filename=filename,
                reason=f"cannot load handler {rule.handler}: {e}",
            ) from e

    return Policy(
        title=rule.title,
        description=rule.description,
        pattern=rule.pattern,
        handler=build_handler(rule, plugin),
        source=path,
    )
