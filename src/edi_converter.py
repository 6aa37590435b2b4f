import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Callable, Generic, List, Optional, Sequence, TypeVar, Union

from business_models import (
    Address, BeginningSegment, ConversionHeader, ConversionMetadata, ConversionResult, DatePeriod,
    Demographics, Entity, FunctionalGroupHeader, HealthCoverage, InterchangeControl, Member, MemberName,
    Payment, Reference, RemittanceDetail, TransactionSetHeader,
)
from edi_models import Segment, Transaction, TransactionTypeError
from edi_tokenizer import interchange_field

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Placeholder values used when a captured field is missing during reconstruction.
# They are arbitrary defaults, not business requirements.
DEFAULT_AUTHORIZATION_QUALIFIER = "00"
DEFAULT_BLANK_INFORMATION = " " * 10
DEFAULT_SENDER_QUALIFIER = "ZZ"
DEFAULT_RECEIVER_QUALIFIER = "ZZ"
DEFAULT_CONTROL_STANDARDS = "U"
DEFAULT_CONTROL_VERSION = "00501"
DEFAULT_CONTROL_NUMBER = "000000001"
DEFAULT_ACKNOWLEDGMENT_REQUESTED = "0"
DEFAULT_TEST_INDICATOR = "P"
DEFAULT_COMPONENT_SEPARATOR = ">"
DEFAULT_FUNCTIONAL_CODE = "BE"
DEFAULT_GROUP_CONTROL_NUMBER = "1"
DEFAULT_RESPONSIBLE_AGENCY = "X"
DEFAULT_GROUP_VERSION = "005010X220A1"
DEFAULT_TRANSACTION_CONTROL_NUMBER = "0001"
DEFAULT_BGN = BeginningSegment(purpose_code="00", reference_id="ABC123", date="20241208", time="1200")

ELEMENT_SEPARATOR = "*"
SEGMENT_TERMINATOR = "~"

# --- Field Helpers ---
def _field(segment: Segment, position: int) -> str:
    return segment.get_element(position) or ""

def _parse_amount(value: Optional[str]) -> Decimal:
    """Decimal value of an amount element; missing or non-numeric input yields 0."""
    if not value or not value.strip():
        return Decimal("0")
    try:
        amount = Decimal(value.strip())
    except InvalidOperation:
        logger.debug(f"Non-numeric amount '{value}' extracted as 0.")
        return Decimal("0")
    return amount if amount.is_finite() else Decimal("0")

# --- Entity accumulation ---
@dataclass(frozen=True)
class NoCurrentEntity(Generic[T]):
    finished: List[T]


@dataclass(frozen=True)
class Accumulating(Generic[T]):
    finished: List[T]
    builder: T


class EntityFold(Generic[T]):
    """
    Folds a segment stream into entities. A start tag finalizes the entity being
    accumulated (if any) and begins a new one; other segments enrich the current
    entity. The stream end finalizes the last entity.
    """

    def __init__(self, start_tag: str, begin: Callable[[Segment], T], enrich: Callable[[T, Segment], None]):
        self.start_tag = start_tag
        self.begin = begin
        self.enrich = enrich

    def step(self, state: Union[NoCurrentEntity[T], Accumulating[T]], segment: Segment) -> Union[NoCurrentEntity[T], Accumulating[T]]:
        if segment.tag == self.start_tag:
            if isinstance(state, Accumulating):
                state.finished.append(state.builder)
            return Accumulating(state.finished, self.begin(segment))

        if isinstance(state, Accumulating):
            try:
                self.enrich(state.builder, segment)
            except (ValueError, TypeError, IndexError, ArithmeticError) as e:
                logger.warning(f"Skipped {segment.tag} at line {segment.line_number} while extracting: {e}")
        return state

    def run(self, segments: Sequence[Segment]) -> List[T]:
        state: Union[NoCurrentEntity[T], Accumulating[T]] = NoCurrentEntity([])
        for segment in segments:
            state = self.step(state, segment)
        if isinstance(state, Accumulating):
            state.finished.append(state.builder)
        return state.finished

# --- 834 members ---
def _begin_member(segment: Segment) -> Member:
    return Member(
        member_level_code=_field(segment, 1),
        relationship_code=_field(segment, 2),
        maintenance_type_code=_field(segment, 3),
        maintenance_reason_code=_field(segment, 4),
        benefit_status_code=_field(segment, 5),
        employment_status_code=_field(segment, 8),
    )

def _enrich_member(member: Member, segment: Segment):
    if segment.tag == 'NM1':
        if _field(segment, 1) != 'IL':
            return
        member.name = MemberName(
            qualifier=_field(segment, 1),
            entity_type=_field(segment, 2),
            last_name=_field(segment, 3),
            first_name=_field(segment, 4),
            middle_name=_field(segment, 5),
            prefix=_field(segment, 6),
            suffix=_field(segment, 7),
            id_qualifier=_field(segment, 8),
            id=_field(segment, 9),
        )
    elif segment.tag == 'DMG':
        member.demographics = Demographics(
            date_qualifier=_field(segment, 1),
            birth_date=_field(segment, 2),
            gender_code=_field(segment, 3),
            marital_status=_field(segment, 4),
            race_ethnicity=_field(segment, 5),
        )
    elif segment.tag == 'HD':
        member.health_coverage.append(HealthCoverage(
            maintenance_type_code=_field(segment, 1),
            maintenance_reason_code=_field(segment, 2),
            insurance_line_code=_field(segment, 3),
            plan_coverage_description=_field(segment, 4),
            coverage_level_code=_field(segment, 5),
        ))
    elif segment.tag == 'REF':
        reference = Reference(qualifier=_field(segment, 1), value=_field(segment, 2))
        member.references.append(reference)
        if reference.qualifier == '0F':
            member.member_id = reference.value
        elif reference.qualifier == '1L':
            member.plan_code = reference.value
    elif segment.tag == 'N3':
        address = member.address or Address()
        address.address_line1 = _field(segment, 1)
        address.address_line2 = _field(segment, 2)
        member.address = address
    elif segment.tag == 'N4':
        address = member.address or Address()
        address.city = _field(segment, 1)
        address.state = _field(segment, 2)
        address.zip_code = _field(segment, 3)
        member.address = address
    elif segment.tag == 'DTP':
        period = DatePeriod(qualifier=_field(segment, 1), format=_field(segment, 2), value=_field(segment, 3))
        member.dates.append(period)
        if period.qualifier == '348':
            member.effective_date = period.value
        elif period.qualifier == '349':
            member.termination_date = period.value

MEMBER_FOLD: EntityFold[Member] = EntityFold('INS', _begin_member, _enrich_member)

def extract_834_members(transaction: Transaction) -> List[Member]:
    if transaction.type != '834':
        raise TransactionTypeError('834', transaction.type)
    return MEMBER_FOLD.run(transaction.segments)

# --- 820 payments ---
def _begin_payment(segment: Segment) -> Payment:
    return Payment(
        transaction_handling_code=_field(segment, 1),
        monetary_amount=_parse_amount(segment.get_element(2)),
        credit_debit_flag=_field(segment, 3),
        payment_method_code=_field(segment, 4),
        payment_format_code=_field(segment, 5),
        originating_dfi_qualifier=_field(segment, 6),
        originating_dfi_id=_field(segment, 7),
        originating_account_qualifier=_field(segment, 8),
        originating_account_number=_field(segment, 9),
        originating_company_id=_field(segment, 10),
        originating_company_supplemental_code=_field(segment, 11),
        receiving_dfi_qualifier=_field(segment, 12),
        receiving_dfi_id=_field(segment, 13),
        receiving_account_qualifier=_field(segment, 14),
        receiving_account_number=_field(segment, 15),
        effective_entry_date=_field(segment, 16),
    )

def _enrich_payment(payment: Payment, segment: Segment):
    if segment.tag == 'RMR':
        payment.remittance_details.append(RemittanceDetail(
            reference_qualifier=_field(segment, 1),
            reference_id=_field(segment, 2),
            payment_action_code=_field(segment, 3),
            remittance_amount=_parse_amount(segment.get_element(4)),
            invoice_amount=_parse_amount(segment.get_element(5)),
            adjustment_amount=_parse_amount(segment.get_element(6)),
        ))
    elif segment.tag == 'TRN':
        payment.trace_type_code = _field(segment, 1)
        payment.trace_number = _field(segment, 2)
        payment.trace_originator_id = _field(segment, 3)
    elif segment.tag == 'N1':
        party = _entity(segment)
        payment.parties.append(party)
        if party.entity_qualifier == 'PR':
            payment.payer_name = party.entity_name
        elif party.entity_qualifier == 'PE':
            payment.payee_name = party.entity_name

PAYMENT_FOLD: EntityFold[Payment] = EntityFold('BPR', _begin_payment, _enrich_payment)

def extract_820_payments(transaction: Transaction) -> List[Payment]:
    if transaction.type != '820':
        raise TransactionTypeError('820', transaction.type)
    return PAYMENT_FOLD.run(transaction.segments)

# --- Entities and header ---
def _entity(segment: Segment) -> Entity:
    return Entity(
        entity_qualifier=_field(segment, 1),
        entity_name=_field(segment, 2),
        id_qualifier=_field(segment, 3),
        id=_field(segment, 4),
    )

def extract_entities(segments: Sequence[Segment]) -> List[Entity]:
    return [_entity(segment) for segment in segments if segment.tag == 'N1']

def extract_header(transaction: Transaction) -> ConversionHeader:
    """Positional field mapping of the envelope headers, independent of entity extraction."""
    header = ConversionHeader()

    isa_segment = transaction.find_segment('ISA')
    if isa_segment is not None:
        names = list(InterchangeControl.model_fields.keys())
        header.interchange_control = InterchangeControl(
            **{name: interchange_field(isa_segment, position) for position, name in enumerate(names, start=1)}
        )

    gs_segment = transaction.find_segment('GS')
    if gs_segment is not None:
        names = list(FunctionalGroupHeader.model_fields.keys())
        header.functional_group = FunctionalGroupHeader(
            **{name: _field(gs_segment, position) for position, name in enumerate(names, start=1)}
        )

    st_segment = transaction.find_segment('ST')
    if st_segment is not None:
        header.transaction_set = TransactionSetHeader(
            transaction_set_identifier=_field(st_segment, 1),
            transaction_set_control_number=_field(st_segment, 2),
            implementation_reference=_field(st_segment, 3),
        )

    bgn_segment = transaction.find_segment('BGN')
    if bgn_segment is not None:
        names = list(BeginningSegment.model_fields.keys())
        header.beginning_segment = BeginningSegment(
            **{name: _field(bgn_segment, position) for position, name in enumerate(names, start=1)}
        )
    return header

def extract(transaction: Transaction) -> ConversionResult:
    """
    Convert a parsed transaction into business-friendly structures.

    Extraction is best-effort: malformed amounts become 0 and a bad segment never
    stops later entities from being extracted.
    """
    result = ConversionResult(
        header=extract_header(transaction),
        entities=extract_entities(transaction.segments),
        metadata=ConversionMetadata(
            original_format=transaction.type,
            conversion_timestamp=datetime.now(timezone.utc),
            statistics=transaction.statistics,
        ),
    )
    if transaction.type == '834':
        result.members = extract_834_members(transaction)
    elif transaction.type == '820':
        result.payments = extract_820_payments(transaction)

    logger.info(
        f"Extracted {transaction.type}: members={len(result.members)}, payments={len(result.payments)}, "
        f"entities={len(result.entities)}"
    )
    return result

# --- Reconstruction ---
def _segment(tag: str, *elements: str) -> str:
    """Build a segment line, trimming trailing empty elements."""
    values = [value or "" for value in elements]
    while values and values[-1] == "":
        values.pop()
    return ELEMENT_SEPARATOR.join([tag, *values]) + SEGMENT_TERMINATOR

def _format_amount(amount: Decimal) -> str:
    return f"{amount:.2f}"

def _optional_amount(amount: Decimal) -> str:
    return _format_amount(amount) if amount else ""

def _isa_line(isa: InterchangeControl) -> str:
    # ISA is fixed width and keeps every element, including blank ones.
    elements = [
        isa.authorization_qualifier or DEFAULT_AUTHORIZATION_QUALIFIER,
        isa.authorization_information or DEFAULT_BLANK_INFORMATION,
        isa.security_qualifier or DEFAULT_AUTHORIZATION_QUALIFIER,
        isa.security_information or DEFAULT_BLANK_INFORMATION,
        isa.sender_qualifier or DEFAULT_SENDER_QUALIFIER,
        isa.sender_id.ljust(15),
        isa.receiver_qualifier or DEFAULT_RECEIVER_QUALIFIER,
        isa.receiver_id.ljust(15),
        isa.interchange_date,
        isa.interchange_time,
        isa.control_standards or DEFAULT_CONTROL_STANDARDS,
        isa.control_version or DEFAULT_CONTROL_VERSION,
        isa.control_number or DEFAULT_CONTROL_NUMBER,
        isa.acknowledgment_requested or DEFAULT_ACKNOWLEDGMENT_REQUESTED,
        isa.test_indicator or DEFAULT_TEST_INDICATOR,
        isa.component_separator or DEFAULT_COMPONENT_SEPARATOR,
    ]
    return ELEMENT_SEPARATOR.join(["ISA", *elements]) + SEGMENT_TERMINATOR

def _entity_line(entity: Entity) -> str:
    return _segment('N1', entity.entity_qualifier, entity.entity_name, entity.id_qualifier, entity.id)

def _member_lines(member: Member) -> List[str]:
    lines = [_segment(
        'INS',
        member.member_level_code or 'Y',
        member.relationship_code or '18',
        member.maintenance_type_code or '030',
        member.maintenance_reason_code or 'AI',
        member.benefit_status_code or 'A',
        '',
        '',
        member.employment_status_code or 'AC',
    )]
    lines.extend(_segment('REF', ref.qualifier, ref.value) for ref in member.references)
    if member.name:
        name = member.name
        lines.append(_segment(
            'NM1', 'IL', name.entity_type or '1', name.last_name, name.first_name, name.middle_name,
            name.prefix, name.suffix, name.id_qualifier or ('34' if name.id else ''), name.id,
        ))
    if member.address:
        lines.append(_segment('N3', member.address.address_line1, member.address.address_line2))
        lines.append(_segment('N4', member.address.city, member.address.state, member.address.zip_code))
    demographics = member.demographics
    if demographics.birth_date or demographics.gender_code:
        lines.append(_segment(
            'DMG', demographics.date_qualifier or 'D8', demographics.birth_date, demographics.gender_code,
            demographics.marital_status, demographics.race_ethnicity,
        ))
    for coverage in member.health_coverage:
        lines.append(_segment(
            'HD', coverage.maintenance_type_code or '030', coverage.maintenance_reason_code,
            coverage.insurance_line_code or 'HLT', coverage.plan_coverage_description, coverage.coverage_level_code,
        ))
    lines.extend(_segment('DTP', period.qualifier, period.format or 'D8', period.value) for period in member.dates)
    return lines

def _payment_lines(payment: Payment) -> List[str]:
    lines = [_segment(
        'BPR',
        payment.transaction_handling_code or 'I',
        _format_amount(payment.monetary_amount),
        payment.credit_debit_flag or 'C',
        payment.payment_method_code or 'ACH',
        payment.payment_format_code or 'CCP',
        payment.originating_dfi_qualifier,
        payment.originating_dfi_id,
        payment.originating_account_qualifier,
        payment.originating_account_number,
        payment.originating_company_id,
        payment.originating_company_supplemental_code,
        payment.receiving_dfi_qualifier,
        payment.receiving_dfi_id,
        payment.receiving_account_qualifier,
        payment.receiving_account_number,
        payment.effective_entry_date,
    )]
    if payment.trace_number:
        lines.append(_segment('TRN', payment.trace_type_code or '1', payment.trace_number, payment.trace_originator_id))
    lines.extend(_entity_line(party) for party in payment.parties)
    for detail in payment.remittance_details:
        lines.append(_segment(
            'RMR', detail.reference_qualifier or 'PO', detail.reference_id, detail.payment_action_code,
            _format_amount(detail.remittance_amount), _optional_amount(detail.invoice_amount),
            _optional_amount(detail.adjustment_amount),
        ))
    return lines

def to_segments(result: ConversionResult) -> str:
    """
    Rebuild EDI text from a conversion result.

    This is a lossy reconstruction: missing header fields take documented defaults,
    segments are regrouped per entity in a fixed order, elements the extractor did
    not capture are gone, and SE/GE/IEA counts are recomputed from the emitted lines.
    """
    header = result.header
    isa = header.interchange_control or InterchangeControl()
    gs = header.functional_group or FunctionalGroupHeader()
    st = header.transaction_set or TransactionSetHeader()
    original_format = result.metadata.original_format

    transaction_control_number = st.transaction_set_control_number or DEFAULT_TRANSACTION_CONTROL_NUMBER
    group_control_number = gs.group_control_number or DEFAULT_GROUP_CONTROL_NUMBER
    interchange_control_number = isa.control_number or DEFAULT_CONTROL_NUMBER

    body: List[str] = [_segment(
        'ST', st.transaction_set_identifier or original_format, transaction_control_number, st.implementation_reference,
    )]

    if original_format == '834':
        bgn = header.beginning_segment or DEFAULT_BGN
        body.append(_segment('BGN', *(getattr(bgn, name) for name in BeginningSegment.model_fields)))
        body.extend(_entity_line(entity) for entity in result.entities)
        for member in result.members:
            body.extend(_member_lines(member))
    elif original_format == '820':
        # Parties already emitted inside a payment are not repeated at the top.
        payment_parties = [party for payment in result.payments for party in payment.parties]
        remaining = list(payment_parties)
        for entity in result.entities:
            if entity in remaining:
                remaining.remove(entity)
            else:
                body.append(_entity_line(entity))
        for payment in result.payments:
            body.extend(_payment_lines(payment))
    else:
        body.extend(_entity_line(entity) for entity in result.entities)

    body.append(_segment('SE', str(len(body) + 1), transaction_control_number))

    lines = [
        _isa_line(isa),
        _segment(
            'GS', gs.functional_code or DEFAULT_FUNCTIONAL_CODE, gs.application_sender, gs.application_receiver,
            gs.date, gs.time, group_control_number, gs.responsible_agency or DEFAULT_RESPONSIBLE_AGENCY,
            gs.version or DEFAULT_GROUP_VERSION,
        ),
        *body,
        _segment('GE', '1', group_control_number),
        _segment('IEA', '1', interchange_control_number),
    ]
    logger.debug(f"Reconstructed {len(lines)} segments for format {original_format}.")
    return "\n".join(lines)
