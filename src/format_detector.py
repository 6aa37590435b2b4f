import logging
from typing import Optional, Sequence, Union

from edi_models import PayerInfo, Segment, Transaction
from edi_tokenizer import interchange_field, tokenize
from x12_formats import DEFAULT_REFERENCE_DATA, ReferenceData

logger = logging.getLogger(__name__)

UNKNOWN_FORMAT = 'unknown'

def _as_segments(content: Union[str, Sequence[Segment]]) -> Sequence[Segment]:
    return tokenize(content) if isinstance(content, str) else content

def _as_text(content: Union[str, Sequence[Segment]]) -> str:
    if isinstance(content, str):
        return content
    return "\n".join(segment.raw_line for segment in content)

def detect_format(content: Union[str, Sequence[Segment]], reference: ReferenceData = DEFAULT_REFERENCE_DATA) -> str:
    """
    Classify the transaction set code.

    The ST01 code wins when it is a supported format. Otherwise the raw text is
    checked against ordered marker pairs and the first pair found wins; that
    fallback is a heuristic and can misclassify mixed content.
    """
    for segment in _as_segments(content):
        if segment.tag != 'ST':
            continue
        code = (segment.get_element(1) or "").strip()
        if len(code) == 3 and code.isdigit() and code in reference.formats:
            logger.debug(f"Detected format {code} from ST segment at line {segment.line_number}.")
            return code

    text = _as_text(content).lower()
    for pattern in reference.fallback_patterns:
        first, second = pattern.markers
        if first in text and second in text:
            logger.debug(f"Detected format {pattern.format_code} from fallback markers {pattern.markers}.")
            return pattern.format_code

    return UNKNOWN_FORMAT

def _matches_payer(value: str, payer_id: str, payer_name: str) -> bool:
    return bool(value) and (payer_id in value or payer_name in value)

def identify_payer(transaction: Union[Transaction, Sequence[Segment]], reference: ReferenceData = DEFAULT_REFERENCE_DATA) -> Optional[str]:
    """Returns the directory id of the first payer found in ISA sender/receiver or N1 names, or None."""
    segments = transaction.segments if isinstance(transaction, Transaction) else transaction

    isa_segment = next((s for s in segments if s.tag == 'ISA'), None)
    if isa_segment is not None:
        sender_id = interchange_field(isa_segment, 6).upper()
        receiver_id = interchange_field(isa_segment, 8).upper()
        for payer_id, payer in reference.payers.items():
            payer_name = payer.name.upper()
            if _matches_payer(sender_id, payer_id, payer_name) or _matches_payer(receiver_id, payer_id, payer_name):
                return payer_id

    for segment in segments:
        if segment.tag != 'N1':
            continue
        entity_name = (segment.get_element(2) or "").upper()
        for payer_id, payer in reference.payers.items():
            if _matches_payer(entity_name, payer_id, payer.name.upper()):
                return payer_id

    return None

def payer_info(payer_id: str, reference: ReferenceData = DEFAULT_REFERENCE_DATA) -> Optional[PayerInfo]:
    payer = reference.payers.get(payer_id)
    if payer is None:
        return None
    return PayerInfo(id=payer.id, name=payer.name, requirements=dict(payer.special_requirements))
