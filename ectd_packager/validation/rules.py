"""Default validation rule set and its idempotent seeding."""

import logging
from typing import Any

from sqlalchemy.orm import Session

from ectd_packager.config import get_settings
from ectd_packager.models import ValidationRule
from ectd_packager.models.enums import ValidationSeverity

logger = logging.getLogger(__name__)

DEFAULT_VALIDATION_RULES: list[dict[str, Any]] = [
    {
        "name": "pdf-file-size",
        "category": "ECTD_TECHNICAL",
        "check_fn": "checkFileSize",
        # maxMB and the message are filled from settings when seeding
        "params": {},
        "severity": ValidationSeverity.ERROR,
        "message": "File size exceeds maximum limit",
    },
    {
        "name": "pdf-parseable",
        "category": "PDF_COMPLIANCE",
        "check_fn": "checkPdfParseable",
        "params": {},
        "severity": ValidationSeverity.ERROR,
        "message": "PDF file is not parseable or is corrupted",
    },
    {
        "name": "pdf-version",
        "category": "PDF_COMPLIANCE",
        "check_fn": "checkPdfVersion",
        "params": {"allowedVersions": ["1.4", "1.5", "1.6", "1.7"]},
        "severity": ValidationSeverity.ERROR,
        "message": "PDF version must be between 1.4 and 1.7",
    },
    {
        "name": "pdf-not-encrypted",
        "category": "PDF_COMPLIANCE",
        "check_fn": "checkNotEncrypted",
        "params": {},
        "severity": ValidationSeverity.ERROR,
        "message": "PDF must not be encrypted or password protected",
    },
    {
        "name": "pdf-fonts-embedded",
        "category": "PDF_COMPLIANCE",
        "check_fn": "checkFontsEmbedded",
        "params": {},
        "severity": ValidationSeverity.ERROR,
        "message": "All fonts must be embedded in the PDF",
    },
    {
        "name": "pdfa-compliance",
        "category": "PDF_COMPLIANCE",
        "check_fn": "checkPdfACompliance",
        "params": {"allowedVersions": ["1a", "1b", "2a", "2b"]},
        "severity": ValidationSeverity.WARNING,
        "message": "PDF should be PDF/A-1b or PDF/A-2b compliant",
    },
    {
        "name": "ectd-bookmark-depth",
        "category": "ECTD_TECHNICAL",
        "check_fn": "checkBookmarkDepth",
        "params": {"maxDepth": 4},
        "severity": ValidationSeverity.ERROR,
        "message": "Bookmark hierarchy exceeds eCTD maximum of 4 levels",
    },
    {
        "name": "ectd-bookmarks-exist",
        "category": "ECTD_TECHNICAL",
        "check_fn": "checkBookmarksExist",
        "params": {"required": True},
        "severity": ValidationSeverity.WARNING,
        "message": "PDF should have navigation bookmarks for eCTD submissions",
    },
    {
        "name": "ectd-file-naming",
        "category": "ECTD_TECHNICAL",
        "check_fn": "checkFileNaming",
        "params": {"maxLength": 64, "requireLowercase": True},
        "severity": ValidationSeverity.ERROR,
        "message": "File name does not meet eCTD naming conventions",
    },
    {
        "name": "ectd-page-size",
        "category": "ECTD_TECHNICAL",
        "check_fn": "checkPageSize",
        "params": {"allowedSizes": ["Letter", "A4", "Letter-Landscape", "A4-Landscape"]},
        "severity": ValidationSeverity.WARNING,
        "message": "Page size should be standard Letter or A4",
    },
    {
        "name": "ectd-no-external-links",
        "category": "ECTD_TECHNICAL",
        "check_fn": "checkExternalHyperlinks",
        "params": {"allowExternal": False, "allowedDomains": []},
        "severity": ValidationSeverity.WARNING,
        "message": "PDF contains external hyperlinks which may not be allowed in eCTD",
    },
    {
        "name": "ectd-no-javascript",
        "category": "PDF_COMPLIANCE",
        "check_fn": "checkNoJavaScript",
        "params": {},
        "severity": ValidationSeverity.ERROR,
        "message": "PDF must not contain JavaScript or executable content",
    },
]


def _apply_settings(definition: dict[str, Any]) -> dict[str, Any]:
    if definition["check_fn"] != "checkFileSize":
        return definition
    max_mb = get_settings().max_file_size_mb
    return {
        **definition,
        "params": {**definition["params"], "maxMB": max_mb},
        "message": f"File size exceeds maximum limit of {max_mb}MB",
    }


def seed_validation_rules(db: Session) -> int:
    """
    Create or refresh the default rules, matched by name.

    Existing rules are reactivated and overwritten. Returns the number of
    rules created.
    """
    created = 0
    for definition in map(_apply_settings, DEFAULT_VALIDATION_RULES):
        rule = db.query(ValidationRule).filter(ValidationRule.name == definition["name"]).first()
        if rule:
            logger.info(f"[Rules] Updating validation rule {definition['name']}")
            for key, value in definition.items():
                setattr(rule, key, value)
            rule.is_active = True
        else:
            logger.info(f"[Rules] Creating validation rule {definition['name']}")
            db.add(ValidationRule(**definition, auto_fix=False, is_active=True))
            created += 1
    db.commit()
    return created
