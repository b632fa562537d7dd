"""
Project manifest integration (``package.json`` scripts).
"""

from .package_scripts import ManifestError, ScriptError, has_script, run_init, run_npm_script  # noqa: F401
