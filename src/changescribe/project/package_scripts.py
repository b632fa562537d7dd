"""
``package.json`` scripts support.

changescribe is typically wired into JavaScript projects through npm
scripts. :func:`run_init` adds those scripts without touching existing
entries, and the ``pr`` command uses :func:`has_script` and
:func:`run_npm_script` to run the project's format, test and build
steps before opening a pull request.
"""

from __future__ import annotations

import json
import logging
import subprocess
from pathlib import Path
from typing import Any, Dict, List, Optional


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


MANIFEST_NAME = "package.json"

SCRIPT_MAP = {
    "commit": "changescribe commit",
    "pr:summary": "changescribe pr:summary",
    "feature:pr": "changescribe feature:pr",
    "staging:pr": "changescribe staging:pr",
}


class ManifestError(Exception):
    """Raised when ``package.json`` is missing or cannot be parsed."""

    pass


class ScriptError(Exception):
    """Raised when an npm script exits with a non-zero status."""

    pass


def read_manifest(path: Path) -> Dict[str, Any]:
    """Read and parse the manifest at ``path``.

    Raises
    ------
    ManifestError
        If the file cannot be read or is not a JSON object.
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ManifestError(f"Failed to read {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ManifestError(f"Failed to read {path}: expected a JSON object")
    return data


def write_manifest(path: Path, data: Dict[str, Any]) -> None:
    path.write_text(json.dumps(data, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")


def has_script(name: str, cwd: Optional[Path] = None) -> bool:
    """Return True if the manifest in ``cwd`` defines script ``name``.

    A missing or unreadable manifest counts as "no script".
    """
    try:
        manifest = read_manifest((cwd or Path.cwd()) / MANIFEST_NAME)
    except ManifestError:
        return False
    scripts = manifest.get("scripts")
    return isinstance(scripts, dict) and bool(scripts.get(name))


def ensure_scripts(manifest: Dict[str, Any]) -> List[str]:
    """Insert missing :data:`SCRIPT_MAP` entries into ``manifest`` in place.

    Existing scripts are never overwritten. Returns the names added.
    """
    scripts = manifest.get("scripts")
    if not isinstance(scripts, dict):
        scripts = {}
    added: List[str] = []
    for name, command in SCRIPT_MAP.items():
        if not scripts.get(name):
            scripts[name] = command
            added.append(name)
    manifest["scripts"] = scripts
    return added


def run_init(cwd: Optional[Path] = None) -> List[str]:
    """Add the changescribe scripts to ``package.json`` in ``cwd``.

    Returns
    -------
    List[str]
        Names of the scripts that were added; empty when all were present.

    Raises
    ------
    ManifestError
        If there is no readable ``package.json``.
    """
    path = (cwd or Path.cwd()) / MANIFEST_NAME
    if not path.exists():
        raise ManifestError(f"No {MANIFEST_NAME} found in {path.parent}")
    manifest = read_manifest(path)
    added = ensure_scripts(manifest)
    write_manifest(path, manifest)
    logger.debug("Added scripts %s to %s", added, path)
    return added


def run_npm_script(name: str, cwd: Optional[Path] = None) -> None:
    """Run ``npm run <name>`` (``npm test`` for ``test``), streaming its output.

    Raises
    ------
    ScriptError
        If npm cannot be started or the script fails.
    """
    cmd = ["npm", "test"] if name == "test" else ["npm", "run", name]
    logger.debug("Executing %s", " ".join(cmd))
    try:
        result = subprocess.run(cmd, cwd=cwd)
    except OSError as exc:
        raise ScriptError(f"Failed to run {' '.join(cmd)}: {exc}") from exc
    if result.returncode != 0:
        raise ScriptError(f"{' '.join(cmd)} failed with exit code {result.returncode}")
