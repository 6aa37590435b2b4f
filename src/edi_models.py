from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Any, Dict, List, Literal, Optional

# Data model for a tokenized X12 transaction and its validation outcome.
# Attributes are snake_case; JSON output uses camelCase aliases (model_dump(by_alias=True)).

IssueCategory = Literal["critical", "warning", "info"]


class TransactionTypeError(ValueError):
    """Raised when a type-specific operation receives a transaction of another type."""

    def __init__(self, expected: str, actual: str):
        super().__init__(f"Invalid transaction type. Expected {expected}, got {actual}.")
        self.expected = expected
        self.actual = actual


class EdiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Segment(EdiModel):
    """A single EDI segment: the tag plus its positional elements."""
    tag: str
    elements: List[str] = Field(default_factory=list)
    raw_line: str
    line_number: int
    definition: Optional[str] = None
    is_valid: Optional[bool] = None
    errors: Optional[List[str]] = None

    def get_element(self, position: int) -> Optional[str]:
        """Retrieves the value of an element by its position (1-based index)."""
        if 1 <= position <= len(self.elements):
            return self.elements[position - 1]
        return None

    def add_error(self, message: str):
        if self.errors is None:
            self.errors = []
        if message not in self.errors:
            self.errors.append(message)


class TransactionMetadata(EdiModel):
    sender: str = ""
    receiver: str = ""
    interchange_date: str = ""
    control_number: str = ""
    version_id: str = ""
    test_indicator: str = ""


class PayerInfo(EdiModel):
    id: str
    name: str
    requirements: Dict[str, Any] = Field(default_factory=dict)


class TransactionStatistics(EdiModel):
    total_segments: int = 0
    error_count: int = 0
    warning_count: int = 0
    processing_time_ms: float = 0.0


class Transaction(EdiModel):
    """
    One parsed EDI file: the detected set code, every segment in source order,
    and the interchange metadata pulled from the ISA header.
    """
    type: str = "unknown"
    segments: List[Segment] = Field(default_factory=list)
    metadata: TransactionMetadata = Field(default_factory=TransactionMetadata)
    payer: Optional[PayerInfo] = None
    business_context: Optional[str] = None
    statistics: TransactionStatistics = Field(default_factory=TransactionStatistics)

    def find_segment(self, tag: str) -> Optional[Segment]:
        return next((segment for segment in self.segments if segment.tag == tag), None)

    def find_segments(self, tag: str) -> List[Segment]:
        return [segment for segment in self.segments if segment.tag == tag]


class ValidationIssue(EdiModel):
    """Represents a single finding of the structural validator."""
    id: str
    category: IssueCategory
    rule: str
    related_segment: Optional[Segment] = None
    message: str
    description: str
    suggestion: Optional[str] = None


class ValidationReport(EdiModel):
    is_valid: bool
    critical_issues: List[ValidationIssue] = Field(default_factory=list)
    warnings: List[ValidationIssue] = Field(default_factory=list)
    info_issues: List[ValidationIssue] = Field(default_factory=list)
    total_issues: int = 0

    @property
    def all_issues(self) -> List[ValidationIssue]:
        return [*self.critical_issues, *self.warnings, *self.info_issues]
