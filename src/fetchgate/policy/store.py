"""
Policy store: loads the ordered policy set from a directory.

Directory layout:

    policies/
        manifest.json      {"middlewares": ["github.yaml", "httpbin.yaml"]}
        github.yaml
        httpbin.yaml

Loading is best-effort. A missing directory or manifest, an unparsable
manifest, a missing policy file or an invalid definition is recorded as a
diagnostic on the resulting PolicySet and logged; the load carries on with
whatever valid policies remain and never raises.

Reloads build a complete new PolicySet before swapping it in with a single
reference assignment. An evaluation that already took a snapshot with
current() keeps using it until it finishes.
"""

import asyncio
import json
from pathlib import Path

from pydantic import ValidationError

from fetchgate.errors import (
    ConfigDirectoryMissingError,
    LoadError,
    ManifestMissingError,
    ManifestParseError,
)
from fetchgate.logging_config import get_logger
from fetchgate.policy.models import Policy, PolicySet
from fetchgate.policy.rules import load_policy_file
from fetchgate.schema import PolicyManifest

MANIFEST_FILENAME = "manifest.json"

logger = get_logger(__name__)


def read_manifest(directory: Path) -> PolicyManifest:
    """
    Read and validate the manifest of a policy directory.

    Raises:
        ConfigDirectoryMissingError: If the directory does not exist
        ManifestMissingError: If the manifest file does not exist
        ManifestParseError: If the manifest is not a valid manifest object
    """
    if not directory.is_dir():
        raise ConfigDirectoryMissingError(path=str(directory))

    manifest_path = directory / MANIFEST_FILENAME
    if not manifest_path.is_file():
        raise ManifestMissingError(path=str(manifest_path))

    try:
        data = json.loads(manifest_path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, ValueError) as e:
        raise ManifestParseError(path=str(manifest_path), reason=str(e)) from e

    try:
        return PolicyManifest.model_validate(data)
    except ValidationError as e:
        raise ManifestParseError(
            path=str(manifest_path),
            reason=f'{MANIFEST_FILENAME} must contain a "middlewares" array of filenames',
        ) from e


def load_policy_set(directory: Path | str) -> PolicySet:
    """
    Load a policy directory into a new PolicySet.

    Args:
        directory: The policy directory

    Returns:
        PolicySet with policies in manifest order and any load diagnostics
    """
    directory = Path(directory).resolve()
    diagnostics: list[LoadError] = []
    policies: list[Policy] = []

    try:
        manifest = read_manifest(directory)
    except ManifestParseError as e:
        logger.error("manifest_parse_error", path=e.path, reason=e.reason)
        return PolicySet(diagnostics=(e,), directory=directory)
    except LoadError as e:
        logger.warning("policy_directory_unusable", path=e.path, error=e.message)
        return PolicySet(diagnostics=(e,), directory=directory)

    for filename in manifest.middlewares:
        try:
            policy = load_policy_file(directory, filename)
        except LoadError as e:
            logger.warning("policy_skipped", file=filename, error=e.message)
            diagnostics.append(e)
            continue

        policies.append(policy)
        logger.info("policy_loaded", title=policy.title, pattern=policy.pattern, file=filename)

    logger.info("policies_loaded", count=len(policies), skipped=len(diagnostics))
    return PolicySet(
        policies=tuple(policies),
        diagnostics=tuple(diagnostics),
        directory=directory,
    )


class PolicyStore:
    """
    Holds the active PolicySet for a policy directory.

    Usage:
        store = PolicyStore("/etc/fetchgate/policies")
        store.load()
        snapshot = store.current()
        ...
        await store.reload()

    Attributes:
        directory: The policy directory
    """

    def __init__(self, directory: Path | str) -> None:
        """
        Initialize the store. Nothing is read until load() or reload().

        Args:
            directory: The policy directory
        """
        self.directory = Path(directory)
        self._current = PolicySet(directory=self.directory)
        self._reload_lock = asyncio.Lock()

    @property
    def manifest_path(self) -> Path:
        """Location of the manifest file."""
        return self.directory / MANIFEST_FILENAME

    def current(self) -> PolicySet:
        """Return the active PolicySet snapshot."""
        return self._current

    def load(self) -> PolicySet:
        """Load the directory synchronously and make the result active."""
        policy_set = load_policy_set(self.directory)
        self._current = policy_set
        return policy_set

    async def reload(self) -> PolicySet:
        """
        Re-read the directory and atomically replace the active set.

        File reads happen off the event loop. The new set is only installed
        once it is completely built. Reloads run one at a time, so the set
        installed last is always the one read from disk last.
        """
        async with self._reload_lock:
            policy_set = await asyncio.to_thread(load_policy_set, self.directory)
            self._current = policy_set
        return policy_set
