import logging
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from business_models import Member, Payment
from edi_models import Transaction, ValidationIssue, ValidationReport
from edi_tokenizer import interchange_field

logger = logging.getLogger(__name__)

# Row shapes for the external persistence layer. Nothing here talks to a database;
# callers serialize the rows with model_dump(mode="json").

FileType = Literal['834', '820', '837', '835', '270', '271', '278', '999', '850', '855', '856', '810']
FileSource = Literal['upload', 'sftp', 'api', 'cms_test']
FileStatus = Literal['pending', 'processing', 'processed', 'failed']
MemberStatus = Literal['active', 'terminated', 'pending']
PaymentStatus = Literal['pending', 'posted', 'failed', 'reconciled']
ErrorType = Literal['validation', 'parsing', 'compliance', 'business_rule', 'fraud']
ErrorSeverity = Literal['critical', 'high', 'medium', 'low', 'info']

SEVERITY_BY_CATEGORY: Dict[str, ErrorSeverity] = {
    'critical': 'critical',
    'warning': 'medium',
    'info': 'info',
}
ERROR_TYPE_BY_RULE: Dict[str, ErrorType] = {
    'business_rule': 'business_rule',
    'envelope': 'compliance',
    'control_number': 'compliance',
    'segment_definition': 'parsing',
}
TERMINATION_MAINTENANCE_TYPE = '024'
PAYMENT_AMOUNT_QUANTUM = Decimal("0.01")
# edi_payments.payment_amount is DECIMAL(15,2)
MAX_PAYMENT_INTEGER_DIGITS = 13

def _new_id() -> str:
    return str(uuid.uuid4())

def _now() -> datetime:
    return datetime.now(timezone.utc)

def parse_edi_date(value: str) -> Optional[date]:
    """CCYYMMDD to date; anything else is None."""
    if not value or len(value) != 8 or not value.isdigit():
        return None
    try:
        return datetime.strptime(value, "%Y%m%d").date()
    except ValueError:
        logger.debug(f"Ignoring invalid date '{value}'.")
        return None


class EdiFileRecord(BaseModel):
    id: str = Field(default_factory=_new_id)
    file_name: str
    file_type: FileType
    file_size: Optional[int] = None
    file_content: str
    source: FileSource = 'upload'
    status: FileStatus = 'pending'
    error_message: Optional[str] = None
    created_at: datetime = Field(default_factory=_now)
    processed_at: Optional[datetime] = None

class EdiTransactionRecord(BaseModel):
    id: str = Field(default_factory=_new_id)
    file_id: str
    transaction_type: str
    control_number: Optional[str] = None
    sender_id: Optional[str] = None
    receiver_id: Optional[str] = None
    transaction_date: Optional[date] = None
    segment_count: int = 0
    raw_segments: List[Dict[str, Any]] = Field(default_factory=list)
    parsed_data: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=_now)

class EdiMemberRecord(BaseModel):
    id: str = Field(default_factory=_new_id)
    transaction_id: str
    member_id: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    ssn: Optional[str] = None
    date_of_birth: Optional[date] = None
    gender: Optional[str] = None
    address_line1: Optional[str] = None
    address_line2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    effective_date: Optional[date] = None
    termination_date: Optional[date] = None
    plan_code: Optional[str] = None
    coverage_level: Optional[str] = None
    status: MemberStatus = 'pending'
    employer_name: Optional[str] = None
    relationship: Optional[str] = None

class EdiPaymentRecord(BaseModel):
    id: str = Field(default_factory=_new_id)
    transaction_id: str
    payment_amount: Decimal
    payment_method: Optional[str] = None
    payment_date: date
    posting_date: Optional[date] = None
    payer_name: Optional[str] = None
    payee_name: Optional[str] = None
    reference_number: Optional[str] = None
    invoice_number: Optional[str] = None
    account_number: Optional[str] = None
    routing_number: Optional[str] = None
    status: PaymentStatus = 'pending'

    @field_validator('payment_amount')
    @classmethod
    def quantize_amount(cls, value: Decimal) -> Decimal:
        try:
            amount = value.quantize(PAYMENT_AMOUNT_QUANTUM)
        except InvalidOperation as e:
            raise ValueError(f"Payment amount {value} cannot be stored with two decimal places") from e
        if amount.adjusted() >= MAX_PAYMENT_INTEGER_DIGITS:
            raise ValueError(f"Payment amount {value} exceeds {MAX_PAYMENT_INTEGER_DIGITS} integer digits")
        return amount

class EdiErrorRecord(BaseModel):
    id: str = Field(default_factory=_new_id)
    file_id: str
    transaction_id: Optional[str] = None
    error_type: ErrorType
    error_code: Optional[str] = None
    error_message: str
    severity: ErrorSeverity
    segment_id: Optional[str] = None
    element_path: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)
    resolved: bool = False
    resolved_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=_now)

# --- Builders ---
def build_file_record(file_name: str, content: str, file_type: str, source: str = 'upload') -> EdiFileRecord:
    return EdiFileRecord(
        file_name=file_name,
        file_type=file_type,
        file_size=len(content.encode('utf-8')),
        file_content=content,
        source=source,
    )

def build_transaction_record(transaction: Transaction, file_id: str) -> EdiTransactionRecord:
    isa_segment = transaction.find_segment('ISA')
    gs_segment = transaction.find_segment('GS')
    st_segment = transaction.find_segment('ST')
    parsed_data = {
        'transactionType': transaction.type,
        'controlNumber': (st_segment.get_element(2) or "") if st_segment else "",
        'senderId': interchange_field(isa_segment, 6).strip() if isa_segment else "",
        'receiverId': interchange_field(isa_segment, 8).strip() if isa_segment else "",
        'groupDate': (gs_segment.get_element(4) or "") if gs_segment else "",
    }
    return EdiTransactionRecord(
        file_id=file_id,
        transaction_type=transaction.type,
        control_number=parsed_data['controlNumber'] or None,
        sender_id=parsed_data['senderId'] or None,
        receiver_id=parsed_data['receiverId'] or None,
        transaction_date=parse_edi_date(parsed_data['groupDate']),
        segment_count=len(transaction.segments),
        raw_segments=[segment.model_dump(by_alias=True, exclude_none=True) for segment in transaction.segments],
        parsed_data=parsed_data,
    )

def _member_status(member: Member) -> MemberStatus:
    if member.maintenance_type_code == TERMINATION_MAINTENANCE_TYPE:
        return 'terminated'
    return 'active' if member.member_level_code == 'Y' else 'terminated'

def build_member_records(members: List[Member], transaction_id: str) -> List[EdiMemberRecord]:
    records = []
    for member in members:
        name = member.name
        address = member.address
        ssn = name.id if name and name.id_qualifier == '34' and name.id else None
        records.append(EdiMemberRecord(
            transaction_id=transaction_id,
            member_id=member.member_id or (name.id if name else "") or "",
            first_name=name.first_name if name else None,
            last_name=name.last_name if name else None,
            ssn=ssn,
            date_of_birth=parse_edi_date(member.demographics.birth_date),
            gender=member.demographics.gender_code or None,
            address_line1=address.address_line1 if address else None,
            address_line2=(address.address_line2 or None) if address else None,
            city=address.city if address else None,
            state=address.state if address else None,
            zip_code=address.zip_code if address else None,
            effective_date=parse_edi_date(member.effective_date),
            termination_date=parse_edi_date(member.termination_date),
            plan_code=member.plan_code or None,
            coverage_level=(member.health_coverage[-1].coverage_level_code or None) if member.health_coverage else None,
            status=_member_status(member),
            relationship='subscriber' if member.member_level_code == 'Y' else 'dependent',
        ))
    logger.debug(f"Built {len(records)} member rows for transaction {transaction_id}.")
    return records

def build_payment_records(payments: List[Payment], transaction_id: str) -> List[EdiPaymentRecord]:
    records = []
    for payment in payments:
        amount = payment.monetary_amount
        # A zero BPR amount falls back to the first remittance amount.
        if not amount and payment.remittance_details:
            amount = payment.remittance_details[0].remittance_amount
        invoice = payment.remittance_details[-1].reference_id if payment.remittance_details else None
        try:
            record = EdiPaymentRecord(
                transaction_id=transaction_id,
                payment_amount=amount,
                payment_method=payment.payment_method_code or None,
                payment_date=parse_edi_date(payment.effective_entry_date) or _now().date(),
                payer_name=payment.payer_name or None,
                payee_name=payment.payee_name or None,
                reference_number=payment.trace_number or None,
                invoice_number=invoice or None,
                account_number=payment.receiving_account_number or None,
                routing_number=payment.receiving_dfi_id or None,
                status='posted',
            )
        except ValidationError as e:
            logger.warning(f"Skipped payment {payment.trace_number or '(no trace)'}: {e}")
            continue
        records.append(record)
    logger.debug(f"Built {len(records)} payment rows for transaction {transaction_id}.")
    return records

def _error_record(issue: ValidationIssue, file_id: str, transaction_id: Optional[str]) -> EdiErrorRecord:
    segment = issue.related_segment
    return EdiErrorRecord(
        file_id=file_id,
        transaction_id=transaction_id,
        error_type=ERROR_TYPE_BY_RULE.get(issue.rule, 'validation'),
        error_code=issue.id,
        error_message=issue.message,
        severity=SEVERITY_BY_CATEGORY[issue.category],
        segment_id=segment.tag if segment else None,
        element_path=f"line {segment.line_number}" if segment else None,
        details={'description': issue.description, 'suggestion': issue.suggestion, 'rule': issue.rule},
    )

def build_error_records(report: ValidationReport, file_id: str, transaction_id: Optional[str] = None) -> List[EdiErrorRecord]:
    return [_error_record(issue, file_id, transaction_id) for issue in report.all_issues]
