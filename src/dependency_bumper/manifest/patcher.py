"""
Manifest patcher that rewrites one pinned dependency version in package.json.
"""

import json
import os
import shutil
import tempfile
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

from ..config import ManifestConfig
from ..models import PatchOutcome, PatchStatus

logger = logging.getLogger(__name__)

DEPENDENCY_SECTION = "dependencies"


class ManifestPatcher:
    """
    Updates the pinned version of a single dependency in a package manifest.

    The manifest is parsed into an insertion-ordered tree so that every
    field other than the patched one is written back unchanged. The file is
    only rewritten when the dependency is present and pinned to a different
    version; in every other case it is left untouched.
    """

    def __init__(self, config: Optional[ManifestConfig] = None):
        config = config or ManifestConfig()
        self.filename = config.filename
        self.indent = config.indent

    def manifest_path(self, repo_dir: Union[str, Path]) -> Path:
        return Path(repo_dir) / self.filename

    def patch(self, repo_dir: Union[str, Path], library: str, version: str) -> PatchOutcome:
        """
        Set ``dependencies[library]`` to ``version`` in the manifest of a working copy.

        A present key normally yields APPLIED. The one exception is a key
        already pinned to ``version``: the file is left as is and the
        outcome is NOT_APPLICABLE with ``previous_version`` set, so callers
        never commit an unchanged manifest.

        Args:
            repo_dir: Working copy root
            library: Dependency name
            version: Target version, written verbatim

        Returns:
            PatchOutcome describing what was done
        """
        manifest_path = self.manifest_path(repo_dir)

        if not manifest_path.is_file():
            logger.info(f"No {self.filename} found in {repo_dir}")
            return PatchOutcome(
                status=PatchStatus.NOT_APPLICABLE,
                manifest_path=str(manifest_path),
                reason=f"no {self.filename} found"
            )

        try:
            # Decoded from bytes so that CRLF line endings survive
            text = manifest_path.read_bytes().decode('utf-8')
            manifest = json.loads(text)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning(f"Failed to parse {manifest_path}: {e}")
            return PatchOutcome(
                status=PatchStatus.PARSE_ERROR,
                manifest_path=str(manifest_path),
                reason=str(e)
            )

        if not isinstance(manifest, dict):
            return PatchOutcome(
                status=PatchStatus.PARSE_ERROR,
                manifest_path=str(manifest_path),
                reason="top-level value is not a JSON object"
            )

        dependencies = manifest.get(DEPENDENCY_SECTION)
        if not isinstance(dependencies, dict) or library not in dependencies:
            logger.info(f"{library} not found in {DEPENDENCY_SECTION} of {manifest_path}")
            return PatchOutcome(
                status=PatchStatus.NOT_APPLICABLE,
                manifest_path=str(manifest_path),
                reason=f"{library} not found in {DEPENDENCY_SECTION}"
            )

        previous_version = dependencies[library]
        if previous_version == version:
            logger.info(f"{library} is already at version {version} in {manifest_path}")
            return PatchOutcome(
                status=PatchStatus.NOT_APPLICABLE,
                manifest_path=str(manifest_path),
                previous_version=previous_version,
                reason=f"{library} already at version {version}"
            )

        dependencies[library] = version
        self._write(manifest_path, manifest, self._newline(text), text.endswith("\n"))

        logger.info(f"Updated {library} version from {previous_version} to {version}")
        return PatchOutcome(
            status=PatchStatus.APPLIED,
            manifest_path=str(manifest_path),
            previous_version=None if previous_version is None else str(previous_version)
        )

    def _newline(self, text: str) -> str:
        return "\r\n" if "\r\n" in text else "\n"

    def _write(self, manifest_path: Path, manifest: Dict[str, Any], newline: str, trailing: bool) -> None:
        """
        Write the manifest atomically next to the original, then replace it.

        Args:
            manifest_path: Destination file
            manifest: Parsed manifest tree
            newline: Line separator used by the original file
            trailing: Whether the original file ended with a newline
        """
        content = json.dumps(manifest, indent=self.indent, ensure_ascii=False)
        if trailing:
            content += "\n"
        if newline != "\n":
            content = content.replace("\n", newline)

        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{manifest_path.name}.", suffix=".tmp", dir=str(manifest_path.parent)
        )
        try:
            with os.fdopen(fd, 'w', encoding='utf-8', newline='') as f:
                f.write(content)
            shutil.copymode(manifest_path, tmp_name)
            os.replace(tmp_name, manifest_path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
