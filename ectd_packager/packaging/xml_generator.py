"""
eCTD XML backbone generation.

Turns a package manifest into leaf entries (with MD5 checksums) and renders
index.xml plus the regional file. Checksums are computed a batch at a time;
a file that cannot be hashed gets a placeholder checksum and a warning so
one bad file never stops generation.
"""

import asyncio
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ectd_packager.config import get_settings
from ectd_packager.packaging.checksum import calculate_md5
from ectd_packager.packaging.errors import InvalidSequenceNumberError
from ectd_packager.packaging.hierarchy import code_sort_key
from ectd_packager.packaging.types import (
    EctdXmlConfig,
    LeafEntry,
    PackageFile,
    PackageManifest,
    SequenceInfo,
    SubmissionMetadata,
    SubmissionType,
    XmlGenerationResult,
)
from ectd_packager.packaging.xml_templates.index_xml import generate_index_xml
from ectd_packager.packaging.xml_templates.us_regional_xml import FdaMetadata, generate_us_regional_xml
from ectd_packager.services.storage import LocalStorage, get_storage

logger = logging.getLogger(__name__)

PLACEHOLDER_CHECKSUM = "0" * 32
DEFAULT_SPONSOR = "Unknown Sponsor"

_SEQUENCE_PATTERN = re.compile(r"[0-9]{4}")


@dataclass
class XmlGenerationOptions:
    config: EctdXmlConfig = field(default_factory=EctdXmlConfig)
    sequence: SequenceInfo = field(default_factory=lambda: SequenceInfo(number="0000", type="original"))
    # Overrides for SubmissionMetadata fields (sponsor, application_number, ...)
    metadata: dict[str, Any] = field(default_factory=dict)
    # Extra FdaMetadata fields (duns_number, contact, form_356h_ref, ...)
    fda_metadata: dict[str, Any] = field(default_factory=dict)
    # Testing only: leaves get empty checksums
    skip_checksums: bool = False
    leaf_id_prefix: str = "leaf"
    # Hash files at their target path under this directory instead of the
    # source path in the upload store (used after export rewrote the PDFs)
    checksum_root: Path | None = None


def generate_leaf_id(file: PackageFile, index: int, prefix: str = "leaf") -> str:
    """Code "16.2.1" at index 3 gives "leaf-16-2-1-3"."""
    return f"{prefix}-{file.node_code.replace('.', '-')}-{index}"


async def _file_to_leaf(
    file: PackageFile,
    index: int,
    options: XmlGenerationOptions,
    storage: LocalStorage,
) -> tuple[LeafEntry, str | None]:
    checksum = ""
    warning = None

    if not options.skip_checksums:
        try:
            if options.checksum_root is not None:
                checksum = await calculate_md5(file.target_path, LocalStorage(options.checksum_root))
            else:
                checksum = await calculate_md5(file.source_path, storage)
        except Exception as e:
            warning = f"Failed to calculate checksum for {file.file_name}: {e}"
            checksum = PLACEHOLDER_CHECKSUM

    leaf = LeafEntry(
        id=generate_leaf_id(file, index, options.leaf_id_prefix),
        href=file.target_path.replace("\\", "/"),
        checksum=checksum,
        checksum_type="md5",
        file_size=file.file_size,
        title=f"{file.node_code} - {file.node_title}",
        node_code=file.node_code,
    )
    return leaf, warning


async def build_leaf_entries(
    files: list[PackageFile],
    options: XmlGenerationOptions | None = None,
    storage: LocalStorage | None = None,
) -> tuple[list[LeafEntry], list[str]]:
    """
    Leaf entries for every file, in numeric node-code order.

    Leaf ids use the file's position in `files`, so ids are stable for a
    given manifest regardless of batch completion order.
    """
    options = options or XmlGenerationOptions()
    storage = storage or get_storage()
    batch_size = get_settings().checksum_batch_size
    leaves: list[LeafEntry] = []
    warnings: list[str] = []

    for start in range(0, len(files), batch_size):
        batch = files[start : start + batch_size]
        results = await asyncio.gather(
            *(_file_to_leaf(file, start + i, options, storage) for i, file in enumerate(batch))
        )
        for leaf, warning in results:
            leaves.append(leaf)
            if warning:
                logger.warning(f"[XmlGenerator] {warning}")
                warnings.append(warning)

    leaves.sort(key=lambda leaf: code_sort_key(leaf.node_code))
    return leaves, warnings


def _build_metadata(manifest: PackageManifest, options: XmlGenerationOptions) -> SubmissionMetadata:
    overrides = {k: v for k, v in options.metadata.items() if v is not None}
    overrides["sponsor"] = overrides.get("sponsor") or DEFAULT_SPONSOR
    overrides["study_number"] = manifest.study_number
    return SubmissionMetadata(**overrides)


async def generate_ectd_xml(
    manifest: PackageManifest,
    options: XmlGenerationOptions | None = None,
    storage: LocalStorage | None = None,
) -> XmlGenerationResult:
    """
    Generate index.xml and the regional XML for a manifest.

    The regional file is only produced for the US region; for other regions
    `regional_xml` is empty.
    """
    options = options or XmlGenerationOptions()

    leaves, warnings = await build_leaf_entries(manifest.files, options, storage)
    metadata = _build_metadata(manifest, options)
    config = options.config

    index_xml = generate_index_xml(metadata, options.sequence, leaves, config)

    regional_xml = ""
    if config.region == "us":
        extras = {k: v for k, v in options.fda_metadata.items() if v is not None}
        fda_metadata = FdaMetadata(**{**metadata.model_dump(), **extras})
        regional_xml = generate_us_regional_xml(fda_metadata, options.sequence, leaves, config)

    logger.info(f"[XmlGenerator] {len(leaves)} leaf entries for study {manifest.study_number}")

    return XmlGenerationResult(
        index_xml=index_xml,
        regional_xml=regional_xml,
        leaf_entries=leaves,
        warnings=warnings,
    )


def format_sequence_number(number: int) -> str:
    return str(number).zfill(4)


def parse_sequence_number(sequence: str) -> int:
    if not is_valid_sequence(sequence):
        raise InvalidSequenceNumberError(sequence)
    return int(sequence, 10)


def get_next_sequence(current: str) -> str:
    return format_sequence_number(parse_sequence_number(current) + 1)


def is_valid_sequence(sequence: str) -> bool:
    """Exactly four digits, 0000-9999."""
    return bool(_SEQUENCE_PATTERN.fullmatch(sequence))


def determine_submission_type(sequence: str) -> SubmissionType:
    """
    "0000" is the original submission; anything later is an amendment.

    Supplements are never derived, only passed in explicitly.
    """
    return "original" if parse_sequence_number(sequence) == 0 else "amendment"
