import logging
import re
from typing import Callable, Dict, List, Optional

from pydantic import BaseModel, Field

from edi_models import Segment, Transaction, ValidationIssue, ValidationReport
from edi_tokenizer import ISA_ELEMENT_COUNT, interchange_field, interchange_fields
from x12_formats import DEFAULT_REFERENCE_DATA, ReferenceData

logger = logging.getLogger(__name__)

# --- Format Helpers ---
SIX_DIGITS = re.compile(r'^\d{6}$')
EIGHT_DIGITS = re.compile(r'^\d{8}$')
MONETARY_AMOUNT = re.compile(r'^\d+(\.\d{2})?$')
GENDER_CODES = ('M', 'F', 'U')

class ValidatorSettings(BaseModel):
    """Tunable thresholds for the heuristic business rules."""
    orphan_distance: int = Field(10, ge=0, description="Max segment positions an NM1*IL may trail its INS.")
    insured_entity_code: str = "IL"

class EdiValidator:
    """
    Structural validator for a parsed transaction.

    Every pass runs regardless of earlier findings. Issues are returned as data and
    only critical issues make a transaction invalid.
    """

    def __init__(self, reference: ReferenceData = DEFAULT_REFERENCE_DATA, settings: Optional[ValidatorSettings] = None):
        self.reference = reference
        self.settings = settings or ValidatorSettings()
        self._format_rules: Dict[str, Callable[[Segment, List[ValidationIssue]], None]] = {
            'ISA': self._validate_isa_format,
            'DTP': self._validate_dtp_format,
            'DMG': self._validate_dmg_format,
        }

    def validate(self, transaction: Transaction) -> ValidationReport:
        issues: List[ValidationIssue] = []

        self._validate_required_segments(transaction, issues)
        self._validate_envelope(transaction, issues)
        self._validate_control_numbers(transaction, issues)
        self._validate_data_formats(transaction, issues)
        if transaction.type == '834':
            self._validate_834_business_rules(transaction, issues)
        elif transaction.type == '820':
            self._validate_820_business_rules(transaction, issues)
        self._validate_segment_definitions(transaction, issues)

        critical = [i for i in issues if i.category == 'critical']
        warnings = [i for i in issues if i.category == 'warning']
        info = [i for i in issues if i.category == 'info']
        self._annotate_segments(issues)

        report = ValidationReport(
            is_valid=not critical,
            critical_issues=critical,
            warnings=warnings,
            info_issues=info,
            total_issues=len(critical) + len(warnings),
        )
        for issue in issues:
            logger.debug(f"  - [{issue.category.upper()}] {issue.id}: {issue.message}")
        logger.info(
            f"Validation completed for {transaction.type}: valid={report.is_valid}, "
            f"critical={len(critical)}, warnings={len(warnings)}, info={len(info)}"
        )
        return report

    def _add_issue(self, issues: List[ValidationIssue], **fields):
        issue = ValidationIssue(**fields)
        if not any(existing.id == issue.id for existing in issues):
            issues.append(issue)

    def _annotate_segments(self, issues: List[ValidationIssue]):
        for issue in issues:
            segment = issue.related_segment
            if segment is None:
                continue
            segment.add_error(issue.message)
            if issue.category != 'info':
                segment.is_valid = False

    # --- Pass 1: required segments ---
    def _validate_required_segments(self, transaction: Transaction, issues: List[ValidationIssue]):
        present = {segment.tag for segment in transaction.segments}
        # The segment is absent, so the first segment of the file is the only anchor available.
        anchor = transaction.segments[0] if transaction.segments else None
        for required in self.reference.required_segments(transaction.type):
            if required in present:
                continue
            self._add_issue(
                issues,
                id=f"missing-{required}",
                category='critical',
                rule='required_segment',
                related_segment=anchor,
                message=f"Missing required segment: {required}",
                description=f"EDI {transaction.type} transactions must include a {required} segment",
                suggestion=f"Add the {required} segment in the correct position",
            )

    # --- Pass 2: envelope bracketing ---
    def _validate_envelope(self, transaction: Transaction, issues: List[ValidationIssue]):
        segments = transaction.segments
        if not segments:
            return
        if segments[0].tag != 'ISA':
            self._add_issue(
                issues,
                id='isa-not-first',
                category='critical',
                rule='envelope',
                related_segment=segments[0],
                message='ISA segment must be first',
                description='The Interchange Control Header (ISA) must be the first segment',
                suggestion='Move the ISA segment to the beginning of the file',
            )
        if segments[-1].tag != 'IEA':
            self._add_issue(
                issues,
                id='iea-not-last',
                category='critical',
                rule='envelope',
                related_segment=segments[-1],
                message='IEA segment must be last',
                description='The Interchange Control Trailer (IEA) must be the last segment',
                suggestion='Move the IEA segment to the end of the file',
            )

    # --- Pass 3: control numbers ---
    def _validate_control_numbers(self, transaction: Transaction, issues: List[ValidationIssue]):
        isa_segment = transaction.find_segment('ISA')
        iea_segment = transaction.find_segment('IEA')
        if isa_segment is None or iea_segment is None:
            return

        isa_control_number = interchange_field(isa_segment, 13).strip()
        iea_control_number = (iea_segment.get_element(2) or "").strip()
        if isa_control_number != iea_control_number:
            self._add_issue(
                issues,
                id='control-number-mismatch',
                category='critical',
                rule='control_number',
                related_segment=iea_segment,
                message='Control number mismatch',
                description=f"ISA control number ({isa_control_number}) doesn't match IEA control number ({iea_control_number})",
                suggestion='Ensure both ISA and IEA segments have the same control number',
            )

    # --- Pass 4: per-segment field formats ---
    def _validate_data_formats(self, transaction: Transaction, issues: List[ValidationIssue]):
        for segment in transaction.segments:
            rule = self._format_rules.get(segment.tag)
            if rule is not None:
                rule(segment, issues)

    def _validate_isa_format(self, segment: Segment, issues: List[ValidationIssue]):
        fields = interchange_fields(segment)
        if len(fields) < ISA_ELEMENT_COUNT:
            self._add_issue(
                issues,
                id=f"isa-insufficient-elements-{segment.line_number}",
                category='critical',
                rule='field_format',
                related_segment=segment,
                message='ISA segment has insufficient elements',
                description=f"ISA segment must have at least {ISA_ELEMENT_COUNT} elements",
                suggestion='Check the ISA segment format and ensure all required elements are present',
            )

        date = fields[8] if len(fields) > 8 else ""
        if date and not SIX_DIGITS.match(date):
            self._add_issue(
                issues,
                id=f"isa-invalid-date-{segment.line_number}",
                category='warning',
                rule='field_format',
                related_segment=segment,
                message='Invalid date format in ISA segment',
                description=f'Date "{date}" should be in YYMMDD format',
                suggestion='Use YYMMDD format for the interchange date',
            )

    def _validate_dtp_format(self, segment: Segment, issues: List[ValidationIssue]):
        if len(segment.elements) < 3:
            self._add_issue(
                issues,
                id=f"dtp-insufficient-elements-{segment.line_number}",
                category='warning',
                rule='field_format',
                related_segment=segment,
                message='DTP segment has insufficient elements',
                description='DTP segment should have at least 3 elements',
                suggestion='Ensure qualifier, format, and date are provided',
            )
            return

        date_format = segment.get_element(2)
        date = segment.get_element(3)
        if date_format == 'D8' and date and not EIGHT_DIGITS.match(date):
            self._add_issue(
                issues,
                id=f"dtp-invalid-date-{segment.line_number}",
                category='warning',
                rule='field_format',
                related_segment=segment,
                message='Invalid date format in DTP segment',
                description=f'Date "{date}" should be in CCYYMMDD format when format is D8',
                suggestion='Use CCYYMMDD format for D8 date qualifier',
            )

    def _validate_dmg_format(self, segment: Segment, issues: List[ValidationIssue]):
        if len(segment.elements) < 3:
            return

        birth_date = segment.get_element(2)
        gender = segment.get_element(3)
        if birth_date and not EIGHT_DIGITS.match(birth_date):
            self._add_issue(
                issues,
                id=f"dmg-invalid-birthdate-{segment.line_number}",
                category='warning',
                rule='field_format',
                related_segment=segment,
                message='Invalid birth date format',
                description=f'Birth date "{birth_date}" should be in CCYYMMDD format',
                suggestion='Use CCYYMMDD format for birth dates',
            )
        if gender and gender not in GENDER_CODES:
            self._add_issue(
                issues,
                id=f"dmg-invalid-gender-{segment.line_number}",
                category='warning',
                rule='field_format',
                related_segment=segment,
                message='Invalid gender code',
                description=f'Gender code "{gender}" should be M, F, or U',
                suggestion='Use M (Male), F (Female), or U (Unknown) for gender codes',
            )

    # --- Pass 5: business rules ---
    def _validate_834_business_rules(self, transaction: Transaction, issues: List[ValidationIssue]):
        last_ins: Optional[int] = None
        for index, segment in enumerate(transaction.segments):
            if segment.tag == 'INS':
                last_ins = index
            elif segment.tag == 'NM1' and segment.get_element(1) == self.settings.insured_entity_code:
                if last_ins is None or index - last_ins > self.settings.orphan_distance:
                    self._add_issue(
                        issues,
                        id=f"orphaned-nm1-{segment.line_number}",
                        category='warning',
                        rule='business_rule',
                        related_segment=segment,
                        message='NM1 segment may be orphaned',
                        description='Individual NM1 segments should closely follow their corresponding INS segment',
                        suggestion='Ensure NM1*IL segments are properly associated with INS segments',
                    )

    def _validate_820_business_rules(self, transaction: Transaction, issues: List[ValidationIssue]):
        bpr_segments = transaction.find_segments('BPR')
        if not bpr_segments:
            self._add_issue(
                issues,
                id='missing-bpr',
                category='critical',
                rule='business_rule',
                related_segment=transaction.segments[0] if transaction.segments else None,
                message='Missing BPR segment',
                description='EDI 820 transactions must include at least one BPR (Financial Information) segment',
                suggestion='Add a BPR segment with payment details',
            )

        for segment in bpr_segments:
            amount = segment.get_element(2)
            if amount and not MONETARY_AMOUNT.match(amount):
                self._add_issue(
                    issues,
                    id=f"bpr-invalid-amount-{segment.line_number}",
                    category='warning',
                    rule='business_rule',
                    related_segment=segment,
                    message='Invalid payment amount format',
                    description=f'Amount "{amount}" should be in decimal format with up to 2 decimal places',
                    suggestion='Use decimal format like 1234.56 for payment amounts',
                )

    # --- Pass 6: segment definitions (informational) ---
    def _validate_segment_definitions(self, transaction: Transaction, issues: List[ValidationIssue]):
        for segment in transaction.segments:
            if self.reference.is_known_segment(segment.tag):
                continue
            self._add_issue(
                issues,
                id=f"unknown-segment-{segment.line_number}",
                category='info',
                rule='segment_definition',
                related_segment=segment,
                message=f"Unknown segment type: {segment.tag}",
                description=f"Segment '{segment.tag}' is not in the segment definition table",
                suggestion='Check the segment tag for typos or extend the reference tables',
            )

def validate(transaction: Transaction, reference: ReferenceData = DEFAULT_REFERENCE_DATA,
             settings: Optional[ValidatorSettings] = None) -> ValidationReport:
    return EdiValidator(reference, settings).validate(transaction)
