from datetime import datetime
from decimal import Decimal
from pydantic import Field
from typing import List, Optional

from edi_models import EdiModel, TransactionStatistics

# Business-friendly structures built from a segment stream by the extractor.

class InterchangeControl(EdiModel):
    authorization_qualifier: str = ""
    authorization_information: str = ""
    security_qualifier: str = ""
    security_information: str = ""
    sender_qualifier: str = ""
    sender_id: str = ""
    receiver_qualifier: str = ""
    receiver_id: str = ""
    interchange_date: str = ""
    interchange_time: str = ""
    control_standards: str = ""
    control_version: str = ""
    control_number: str = ""
    acknowledgment_requested: str = ""
    test_indicator: str = ""
    component_separator: str = ""

class FunctionalGroupHeader(EdiModel):
    functional_code: str = ""
    application_sender: str = ""
    application_receiver: str = ""
    date: str = ""
    time: str = ""
    group_control_number: str = ""
    responsible_agency: str = ""
    version: str = ""

class TransactionSetHeader(EdiModel):
    transaction_set_identifier: str = ""
    transaction_set_control_number: str = ""
    implementation_reference: str = ""

class BeginningSegment(EdiModel):
    purpose_code: str = ""
    reference_id: str = ""
    date: str = ""
    time: str = ""
    time_code: str = ""
    reference_id_2: str = ""
    transaction_type_code: str = ""
    action_code: str = ""

class ConversionHeader(EdiModel):
    interchange_control: Optional[InterchangeControl] = None
    functional_group: Optional[FunctionalGroupHeader] = None
    transaction_set: Optional[TransactionSetHeader] = None
    beginning_segment: Optional[BeginningSegment] = None

class Entity(EdiModel):
    """An N1 party (sponsor, payer, payee, ...)."""
    entity_qualifier: str = ""
    entity_name: str = ""
    id_qualifier: str = ""
    id: str = ""

# --- 834 members ---
class MemberName(EdiModel):
    qualifier: str = ""
    entity_type: str = ""
    last_name: str = ""
    first_name: str = ""
    middle_name: str = ""
    prefix: str = ""
    suffix: str = ""
    id_qualifier: str = ""
    id: str = ""

class Demographics(EdiModel):
    date_qualifier: str = ""
    birth_date: str = ""
    gender_code: str = ""
    marital_status: str = ""
    race_ethnicity: str = ""

class Address(EdiModel):
    address_line1: str = ""
    address_line2: str = ""
    city: str = ""
    state: str = ""
    zip_code: str = ""

class HealthCoverage(EdiModel):
    maintenance_type_code: str = ""
    maintenance_reason_code: str = ""
    insurance_line_code: str = ""
    plan_coverage_description: str = ""
    coverage_level_code: str = ""

class Reference(EdiModel):
    qualifier: str = ""
    value: str = ""

class DatePeriod(EdiModel):
    qualifier: str = ""
    format: str = ""
    value: str = ""

class Member(EdiModel):
    member_level_code: str = ""
    relationship_code: str = ""
    maintenance_type_code: str = ""
    maintenance_reason_code: str = ""
    benefit_status_code: str = ""
    employment_status_code: str = ""
    member_id: str = ""
    plan_code: str = ""
    effective_date: str = ""
    termination_date: str = ""
    name: Optional[MemberName] = None
    demographics: Demographics = Field(default_factory=Demographics)
    address: Optional[Address] = None
    health_coverage: List[HealthCoverage] = Field(default_factory=list)
    references: List[Reference] = Field(default_factory=list)
    dates: List[DatePeriod] = Field(default_factory=list)

# --- 820 payments ---
class RemittanceDetail(EdiModel):
    reference_qualifier: str = ""
    reference_id: str = ""
    payment_action_code: str = ""
    remittance_amount: Decimal = Decimal("0")
    invoice_amount: Decimal = Decimal("0")
    adjustment_amount: Decimal = Decimal("0")

class Payment(EdiModel):
    transaction_handling_code: str = ""
    monetary_amount: Decimal = Decimal("0")
    credit_debit_flag: str = ""
    payment_method_code: str = ""
    payment_format_code: str = ""
    originating_dfi_qualifier: str = ""
    originating_dfi_id: str = ""
    originating_account_qualifier: str = ""
    originating_account_number: str = ""
    originating_company_id: str = ""
    originating_company_supplemental_code: str = ""
    receiving_dfi_qualifier: str = ""
    receiving_dfi_id: str = ""
    receiving_account_qualifier: str = ""
    receiving_account_number: str = ""
    effective_entry_date: str = ""
    trace_type_code: str = ""
    trace_number: str = ""
    trace_originator_id: str = ""
    payer_name: str = ""
    payee_name: str = ""
    parties: List[Entity] = Field(default_factory=list)
    remittance_details: List[RemittanceDetail] = Field(default_factory=list)

class ConversionMetadata(EdiModel):
    original_format: str
    conversion_timestamp: datetime
    statistics: TransactionStatistics = Field(default_factory=TransactionStatistics)

class ConversionResult(EdiModel):
    header: ConversionHeader = Field(default_factory=ConversionHeader)
    members: List[Member] = Field(default_factory=list)
    payments: List[Payment] = Field(default_factory=list)
    entities: List[Entity] = Field(default_factory=list)
    metadata: ConversionMetadata
