from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Literal, Optional, Tuple

# Envelope tags from other EDI standards that are tolerated without a definition.
TOLERATED_UNDEFINED_TAGS = ("UNA", "UNB", "UNH")

# --- Reference table models ---
class FormatDefinition(BaseModel):
    model_config = ConfigDict(frozen=True)

    code: str
    name: str
    description: str
    category: Literal["healthcare", "supply_chain", "financial"]
    required_segments: Tuple[str, ...]
    business_context: str

class PayerDefinition(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    formats: Tuple[str, ...]
    special_requirements: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    contact_info: Dict[str, str] = Field(default_factory=dict)

class FallbackPattern(BaseModel):
    """Two lower-cased markers that, when both present in the raw text, imply a set code."""
    model_config = ConfigDict(frozen=True)

    format_code: str
    markers: Tuple[str, str]

class ReferenceData(BaseModel):
    """
    Read-only lookup tables used by the parser, detector and validator.
    Built once and passed in as a dependency so callers can substitute alternate tables.
    """
    model_config = ConfigDict(frozen=True)

    formats: Dict[str, FormatDefinition]
    payers: Dict[str, PayerDefinition] = Field(default_factory=dict)
    segment_definitions: Dict[str, str] = Field(default_factory=dict)
    fallback_patterns: Tuple[FallbackPattern, ...] = ()

    def required_segments(self, format_code: str) -> Tuple[str, ...]:
        definition = self.formats.get(format_code)
        return definition.required_segments if definition else ()

    def business_context(self, format_code: str) -> Optional[str]:
        definition = self.formats.get(format_code)
        return definition.business_context if definition else None

    def is_known_segment(self, tag: str) -> bool:
        return tag in self.segment_definitions or tag in TOLERATED_UNDEFINED_TAGS


def _format(code: str, name: str, description: str, category: str, required: List[str], context: str) -> FormatDefinition:
    return FormatDefinition(
        code=code, name=name, description=description, category=category,
        required_segments=tuple(required), business_context=context,
    )

X12_FORMATS: Dict[str, FormatDefinition] = {
    # Healthcare
    '834': _format('834', 'Benefit Enrollment and Maintenance', 'Member enrollment, changes, and terminations',
                   'healthcare', ['ISA', 'GS', 'ST', 'BGN', 'N1', 'INS', 'NM1', 'SE', 'GE', 'IEA'], 'enrollment'),
    '820': _format('820', 'Payment Order/Remittance Advice', 'Premium payments and remittance information',
                   'healthcare', ['ISA', 'GS', 'ST', 'BPR', 'N1', 'SE', 'GE', 'IEA'], 'payment'),
    '837': _format('837', 'Health Care Claim', 'Professional, institutional, and dental claims',
                   'healthcare', ['ISA', 'GS', 'ST', 'BHT', 'NM1', 'CLM', 'SE', 'GE', 'IEA'], 'claims'),
    '835': _format('835', 'Health Care Claim Payment/Advice', 'Payment and remittance advice for claims',
                   'healthcare', ['ISA', 'GS', 'ST', 'BPR', 'N1', 'CLP', 'SE', 'GE', 'IEA'], 'payment'),
    '270': _format('270', 'Eligibility/Benefit Inquiry', 'Request for member eligibility and benefits',
                   'healthcare', ['ISA', 'GS', 'ST', 'BHT', 'HL', 'NM1', 'SE', 'GE', 'IEA'], 'eligibility'),
    '271': _format('271', 'Eligibility/Benefit Response', 'Response to eligibility and benefit inquiries',
                   'healthcare', ['ISA', 'GS', 'ST', 'BHT', 'HL', 'NM1', 'EB', 'SE', 'GE', 'IEA'], 'eligibility'),
    '278': _format('278', 'Health Care Services Review', 'Prior authorization requests and responses',
                   'healthcare', ['ISA', 'GS', 'ST', 'BHT', 'HL', 'NM1', 'SE', 'GE', 'IEA'], 'authorization'),
    '999': _format('999', 'Implementation Acknowledgment', 'Functional acknowledgment for received transactions',
                   'healthcare', ['ISA', 'GS', 'ST', 'AK1', 'AK9', 'SE', 'GE', 'IEA'], 'acknowledgment'),
    # Supply chain and logistics
    '850': _format('850', 'Purchase Order', 'Electronic purchase orders',
                   'supply_chain', ['ISA', 'GS', 'ST', 'BEG', 'N1', 'PO1', 'SE', 'GE', 'IEA'], 'procurement'),
    '855': _format('855', 'Purchase Order Acknowledgment', 'Acknowledgment of purchase orders',
                   'supply_chain', ['ISA', 'GS', 'ST', 'BAK', 'N1', 'PO1', 'ACK', 'SE', 'GE', 'IEA'], 'procurement'),
    '856': _format('856', 'Ship Notice/Manifest', 'Advance shipping notifications',
                   'supply_chain', ['ISA', 'GS', 'ST', 'BSN', 'HL', 'TD1', 'SE', 'GE', 'IEA'], 'shipping'),
    '810': _format('810', 'Invoice', 'Electronic invoices',
                   'financial', ['ISA', 'GS', 'ST', 'BIG', 'N1', 'IT1', 'SE', 'GE', 'IEA'], 'billing'),
}

PAYER_DATABASE: Dict[str, PayerDefinition] = {
    'AETNA': PayerDefinition(
        id='AETNA',
        name='Aetna Inc.',
        formats=('834', '820', '837', '835', '270', '271'),
        special_requirements={
            '834': {
                'memberIdFormat': r'^[A-Z]{2}\d{8}$',
                'requiredElements': ['INS*Y', 'NM1*IL', 'DMG', 'HD'],
                'businessRules': ['Must include employer information', 'Effective dates required'],
            },
            '820': {
                'paymentFormat': r'^\d+\.\d{2}$',
                'routingNumberRequired': True,
                'controlNumberSequence': 'AETNA-YYYYMMDD-NNNN',
            },
        },
        contact_info={'technicalSupport': 'edi.support@aetna.com', 'testingEnvironment': 'test.edi.aetna.com'},
    ),
    'KAISER': PayerDefinition(
        id='KAISER',
        name='Kaiser Foundation Health Plan',
        formats=('834', '820', '837', '835'),
        special_requirements={
            '834': {
                'memberIdFormat': r'^\d{9}$',
                'requiredElements': ['INS*Y', 'NM1*IL', 'N3', 'N4', 'DMG', 'HD'],
                'businessRules': ['Address validation required', 'Plan codes must be pre-approved'],
            },
            '820': {
                'paymentFormat': r'^\d+\.\d{2}$',
                'bankAccountValidation': True,
                'reconciliationRequired': True,
            },
        },
        contact_info={'technicalSupport': 'edisupport@kp.org', 'testingEnvironment': 'test.kp.org'},
    ),
    'BCBS_AL': PayerDefinition(
        id='BCBS_AL',
        name='Blue Cross Blue Shield of Alabama',
        formats=('834', '820', '837', '835', '270', '271', '278'),
        special_requirements={
            '834': {
                'memberIdFormat': r'^[A-Z]{3}\d{9}$',
                'requiredElements': ['INS*Y', 'NM1*IL', 'DMG', 'HD', 'REF*0F'],
                'businessRules': ['SSN validation required', 'Dependent relationships must be specified'],
            },
            '820': {
                'paymentFormat': r'^\d+\.\d{2}$',
                'traceNumberRequired': True,
                'eftDetailsRequired': True,
            },
        },
        contact_info={'technicalSupport': 'edi@bcbsal.org', 'testingEnvironment': 'test.bcbsal.org'},
    ),
}

SEGMENT_DEFINITIONS: Dict[str, str] = {
    # Control segments
    'ISA': 'Interchange Control Header',
    'IEA': 'Interchange Control Trailer',
    'GS': 'Functional Group Header',
    'GE': 'Functional Group Trailer',
    'ST': 'Transaction Set Header',
    'SE': 'Transaction Set Trailer',
    # Healthcare
    'BGN': 'Beginning Segment',
    'BHT': 'Beginning of Hierarchical Transaction',
    'INS': 'Member Level Detail',
    'NM1': 'Individual Name',
    'N1': 'Entity Name',
    'N3': 'Address Information',
    'N4': 'Geographic Location',
    'DMG': 'Demographic Information',
    'HD': 'Health Coverage',
    'DTP': 'Date/Time Period',
    'REF': 'Reference Information',
    'PER': 'Administrative Communications Contact',
    'EB': 'Eligibility or Benefit Information',
    'CLP': 'Claim Level Data',
    'BPR': 'Financial Information',
    'TRN': 'Trace',
    'QTY': 'Quantity',
    'AMT': 'Monetary Amount',
    'HL': 'Hierarchical Level',
    # Acknowledgment
    'AK1': 'Functional Group Response Header',
    'AK9': 'Functional Group Response Trailer',
    'TA1': 'Interchange Acknowledgment',
    # Supply chain
    'BEG': 'Beginning Segment for Purchase Order',
    'BAK': 'Beginning Segment for Purchase Order Acknowledgment',
    'BSN': 'Beginning Segment for Ship Notice',
    'BIG': 'Beginning Segment for Invoice',
    'PO1': 'Baseline Item Data',
    'ACK': 'Line Item Acknowledgment',
    'IT1': 'Baseline Item Data (Invoice)',
    'TD1': 'Carrier Details (Quantity and Weight)',
    # Financial
    'RMR': 'Remittance Advice',
    'DTM': 'Date/Time Reference',
    'ENT': 'Entity',
}

# Order matters: the first pair whose markers both appear wins.
FALLBACK_PATTERNS: Tuple[FallbackPattern, ...] = tuple(
    FallbackPattern(format_code=code, markers=(first, second))
    for code, first, second in (
        ('834', 'bgn*', 'ins*'),
        ('820', 'bpr*', 'rmr*'),
        ('837', 'bht*', 'clm*'),
        ('835', 'bpr*', 'clp*'),
        ('271', 'bht*', 'eb*'),
        ('850', 'beg*', 'po1*'),
        ('855', 'bak*', 'ack*'),
        ('856', 'bsn*', 'td1*'),
        ('810', 'big*', 'it1*'),
    )
)

DEFAULT_REFERENCE_DATA = ReferenceData(
    formats=X12_FORMATS,
    payers=PAYER_DATABASE,
    segment_definitions=SEGMENT_DEFINITIONS,
    fallback_patterns=FALLBACK_PATTERNS,
)
