"""Locate built distribution archives under the policies tree.

Archives live at
``<root>/mediation/ai/<policy>/universal-gw/<policy>/target/<policy>-distribution.zip``;
the policy name is the first path segment below the ``mediation/ai`` anchor.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Optional

from .errors import NoPackagesFound
from .models import DistributionPackage

__all__ = ["PackageLocator", "ARCHIVE_SUFFIX", "policy_name_for"]

ARCHIVE_SUFFIX = "-distribution.zip"


def policy_name_for(archive: Path, policies_dir: Path) -> Optional[str]:
    """Return the policy segment following ``policies_dir`` or ``None``.

    Examples:
        >>> policy_name_for(
        ...     Path("/p/mediation/ai/pii-masking/universal-gw/x/target/x-distribution.zip"),
        ...     Path("/p/mediation/ai"),
        ... )
        'pii-masking'
    """
    try:
        parts = archive.relative_to(policies_dir).parts
    except ValueError:
        return None
    if len(parts) < 2:
        return None
    return parts[0]


class PackageLocator:
    """Discover one :class:`DistributionPackage` per policy."""

    def __init__(self, policies_dir: Path, *, logger: Optional[logging.Logger] = None) -> None:
        self._policies_dir = policies_dir
        self._logger = logger or logging.getLogger(__name__)

    def locate(self) -> List[DistributionPackage]:
        """Return packages sorted by policy name.

        Raises:
            NoPackagesFound: If no archive is found; the build has not run.
        """

        self._logger.info("Searching for policy distribution ZIP files...")
        found: Dict[str, DistributionPackage] = {}
        for archive in self._candidates():
            name = policy_name_for(archive, self._policies_dir)
            if name is None:
                self._logger.warning("Ignoring archive outside a policy directory: %s", archive)
                continue
            if name in found:
                self._logger.warning(
                    "Ignoring additional archive for %s: %s (using %s)",
                    name,
                    archive,
                    found[name].archive_path,
                )
                continue
            found[name] = DistributionPackage(policy_name=name, archive_path=archive)

        if not found:
            raise NoPackagesFound(
                f"No distribution ZIP files found under {self._policies_dir}. "
                "Please run the build script first: ./build-all-policies.sh"
            )
        self._logger.info("Found %d distribution ZIP files", len(found))
        return [found[name] for name in sorted(found)]

    def _candidates(self) -> List[Path]:
        if not self._policies_dir.is_dir():
            return []
        return sorted(
            path for path in self._policies_dir.rglob(f"*{ARCHIVE_SUFFIX}") if path.is_file()
        )
