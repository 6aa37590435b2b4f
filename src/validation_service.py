from typing import List, Optional
import logging

from edi_models import Transaction, ValidationReport
from edi_parser import EdiParser
from edi_validator import EdiValidator, ValidatorSettings
from reference_manager import ReferenceDataManager

logger = logging.getLogger(__name__)

FINDING_LEVELS = {
    'critical': 'error',
    'warning': 'warning',
    'info': 'info',
}

class ValidationFinding:
    """Container for validation findings."""
    def __init__(self, level: str, code: str, message: str, location: Optional[dict] = None):
        self.level = level
        self.code = code
        self.message = message
        self.location = location or {}

class ValidationResult:
    """Container for validation results."""
    def __init__(self, valid: bool, findings: List[ValidationFinding],
                 transaction: Optional[Transaction] = None, report: Optional[ValidationReport] = None):
        self.valid = valid
        self.findings = findings
        self.transaction = transaction
        self.report = report

class EDIValidationService:
    """Parses and validates EDI documents against the (optionally partner-specific) reference tables."""

    def __init__(self, reference_path: Optional[str] = None, settings: Optional[ValidatorSettings] = None):
        self.reference_manager = ReferenceDataManager(reference_path)
        self.settings = settings or ValidatorSettings()

    def validate_edi(self, edi_content: str, partner_id: Optional[str] = None) -> ValidationResult:
        """
        Validate EDI content with the structural validator.

        Args:
            edi_content: The EDI document content
            partner_id: Trading partner whose reference overrides should apply

        Returns:
            ValidationResult containing validation status and findings
        """
        try:
            logger.info(f"Starting EDI validation (partner: {partner_id or 'default'})")

            reference = self.reference_manager.get_reference(partner_id=partner_id)
            transaction = EdiParser(edi_content, reference).parse()
            report = EdiValidator(reference, self.settings).validate(transaction)

            findings = []
            for issue in report.all_issues:
                segment = issue.related_segment
                findings.append(ValidationFinding(
                    level=FINDING_LEVELS[issue.category],
                    code=issue.id,
                    message=issue.message,
                    location={
                        "segment_id": segment.tag if segment else "DOCUMENT",
                        "line_number": segment.line_number if segment else 1,
                    },
                ))

            logger.info(f"Validation completed: valid={report.is_valid}, findings={len(findings)}")
            return ValidationResult(valid=report.is_valid, findings=findings, transaction=transaction, report=report)

        except Exception as e:
            logger.error(f"EDI validation failed: {e}", exc_info=True)

            error_finding = ValidationFinding(
                level="error",
                code="VALIDATION_ERROR",
                message=f"Validation failed: {str(e)}",
                location={
                    "segment_id": "DOCUMENT",
                    "line_number": 1,
                },
            )
            return ValidationResult(valid=False, findings=[error_finding])
