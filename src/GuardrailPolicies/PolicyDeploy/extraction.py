"""Pull the policy specification and definition template out of an archive.

Most distribution archives carry ``policy-definition.json`` and
``artifact.j2`` at their root.  Some families package them under a nested
directory instead; :data:`ARCHIVE_LAYOUTS` maps a file-name marker to that
directory.  The first matching layout wins, otherwise the flat layout applies.
There is no fallback between layouts: an archive classified into a nested
layout that does not contain the nested members fails extraction.

Both members are written flatly into ``<scratch>/<policy>/`` so the extracted
files can be inspected after the run.
"""

from __future__ import annotations

import logging
import shutil
import zipfile
import zlib
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Optional, Tuple

from .errors import ExtractionError
from .models import DistributionPackage, ExtractedArtifact

# Corrupt deflate data, encrypted members and unsupported compression surface
# as zlib.error, RuntimeError and NotImplementedError from ZipFile.read.
_ARCHIVE_READ_ERRORS = (
    zipfile.BadZipFile,
    zipfile.LargeZipFile,
    zlib.error,
    RuntimeError,
    NotImplementedError,
    OSError,
)

__all__ = [
    "ArchiveLayout",
    "ARCHIVE_LAYOUTS",
    "FLAT_LAYOUT",
    "POLICY_SPEC_NAME",
    "POLICY_DEFINITION_NAME",
    "ArtifactExtractor",
    "layout_for",
    "prepare_scratch_dir",
]

POLICY_SPEC_NAME = "policy-definition.json"
POLICY_DEFINITION_NAME = "artifact.j2"


@dataclass(frozen=True)
class ArchiveLayout:
    """Where the two policy members live inside an archive."""

    name: str
    member_prefix: str = ""

    def member(self, filename: str) -> str:
        if not self.member_prefix:
            return filename
        return str(PurePosixPath(self.member_prefix) / filename)

    @property
    def spec_member(self) -> str:
        return self.member(POLICY_SPEC_NAME)

    @property
    def definition_member(self) -> str:
        return self.member(POLICY_DEFINITION_NAME)


FLAT_LAYOUT = ArchiveLayout(name="flat")

#: Family marker (substring of the archive file name) -> nested layout.
ARCHIVE_LAYOUTS: Tuple[Tuple[str, ArchiveLayout], ...] = (
    (
        "azure-content-safety-guardrail",
        ArchiveLayout(name="nested:content-moderation", member_prefix="content-moderation"),
    ),
)


def layout_for(archive_name: str) -> ArchiveLayout:
    """Return the layout for an archive file name.

    Examples:
        >>> layout_for("azure-content-safety-guardrail-distribution.zip").member_prefix
        'content-moderation'
        >>> layout_for("pii-masking-regex-distribution.zip").name
        'flat'
    """
    for marker, layout in ARCHIVE_LAYOUTS:
        if marker in archive_name:
            return layout
    return FLAT_LAYOUT


def prepare_scratch_dir(path: Path) -> Path:
    """Empty and recreate the process-wide extraction directory."""
    if path.exists():
        shutil.rmtree(path)
    path.mkdir(parents=True, exist_ok=True)
    return path


class ArtifactExtractor:
    """Extract the specification and definition template for one package."""

    def __init__(self, scratch_dir: Path, *, logger: Optional[logging.Logger] = None) -> None:
        self._scratch_dir = scratch_dir
        self._logger = logger or logging.getLogger(__name__)

    def extract(self, package: DistributionPackage) -> ExtractedArtifact:
        """Extract both members of ``package`` into its scratch directory.

        Raises:
            ExtractionError: If the archive cannot be read or a member is
                missing or empty.
        """

        archive = package.archive_path
        layout = layout_for(archive.name)
        target_dir = self._scratch_dir / package.policy_name
        self._logger.info("Extracting policy files from: %s", archive.name)
        if layout is not FLAT_LAYOUT:
            self._logger.info("Using %s layout for %s", layout.name, archive.name)

        spec_path = target_dir / POLICY_SPEC_NAME
        definition_path = target_dir / POLICY_DEFINITION_NAME
        try:
            with zipfile.ZipFile(archive) as bundle:
                spec = self._read_member(bundle, layout.spec_member, archive)
                definition = self._read_member(bundle, layout.definition_member, archive)
            target_dir.mkdir(parents=True, exist_ok=True)
            spec_path.write_bytes(spec)
            definition_path.write_bytes(definition)
        except ExtractionError:
            raise
        except _ARCHIVE_READ_ERRORS as exc:
            raise ExtractionError(
                f"Cannot extract distribution archive {archive}: {exc}", archive=archive
            ) from exc
        return ExtractedArtifact(
            policy_spec=spec,
            policy_definition=definition,
            spec_path=spec_path,
            definition_path=definition_path,
        )

    @staticmethod
    def _read_member(bundle: zipfile.ZipFile, member: str, archive: Path) -> bytes:
        try:
            data = bundle.read(member)
        except KeyError as exc:
            raise ExtractionError(
                f"Member {member} not found in {archive.name}", archive=archive
            ) from exc
        if not data:
            raise ExtractionError(f"Member {member} is empty in {archive.name}", archive=archive)
        return data
