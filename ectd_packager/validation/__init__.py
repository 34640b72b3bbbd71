from .package_validator import (
    format_validation_report,
    serialize_validation_report,
    validate_package,
)
from .runner import run_validation, run_validation_and_update_status
from .rules import DEFAULT_VALIDATION_RULES, seed_validation_rules
from .types import (
    CheckResult,
    PackageValidationOptions,
    PackageValidationReport,
    ValidationIssue,
    ValidationSummary,
    XmlValidationOptions,
    XmlValidationResult,
)
from .xml_validator import (
    format_xml_validation_report,
    validate_ectd_xml,
    validate_index_xml,
    validate_us_regional_xml,
)

__all__ = [
    "CheckResult",
    "DEFAULT_VALIDATION_RULES",
    "PackageValidationOptions",
    "PackageValidationReport",
    "ValidationIssue",
    "ValidationSummary",
    "XmlValidationOptions",
    "XmlValidationResult",
    "format_validation_report",
    "format_xml_validation_report",
    "run_validation",
    "run_validation_and_update_status",
    "seed_validation_rules",
    "serialize_validation_report",
    "validate_ectd_xml",
    "validate_index_xml",
    "validate_package",
    "validate_us_regional_xml",
]
