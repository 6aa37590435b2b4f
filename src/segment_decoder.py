from typing import Dict, List, Tuple

from edi_models import Segment
from edi_tokenizer import interchange_field

# Each description is a title plus (label, element position) pairs.
SegmentDescription = Tuple[str, List[Tuple[str, int]]]

ENVELOPE_DESCRIPTIONS: Dict[str, SegmentDescription] = {
    'ISA': ("Interchange Control Header", [("Authorization", 1), ("Security", 3), ("Sender", 6), ("Receiver", 8)]),
    'GS': ("Functional Group Header", [("Application Sender", 2), ("Application Receiver", 3)]),
    'ST': ("Transaction Set Header", [("Type", 1), ("Control Number", 2)]),
    'REF': ("Reference Information", [("Qualifier", 1), ("Reference ID", 2)]),
    'N1': ("Entity Name", [("Type", 1), ("Name", 2)]),
    'SE': ("Transaction Set Trailer", [("Segment Count", 1), ("Control Number", 2)]),
}

FORMAT_DESCRIPTIONS: Dict[str, Dict[str, SegmentDescription]] = {
    '834': {
        'BGN': ("Beginning Segment", [("Transaction Purpose", 1), ("Reference ID", 2)]),
        'DTP': ("Date/Time", [("Qualifier", 1), ("Format", 2), ("Date", 3)]),
        'QTY': ("Quantity", [("Qualifier", 1), ("Quantity", 2)]),
        'INS': ("Member Level Detail", [("Indicator", 1), ("Relationship", 2)]),
        'NM1': ("Individual Name", [("Type", 1), ("Last Name", 3), ("First Name", 4)]),
        'DMG': ("Demographic Information", [("Date Format", 1), ("Birth Date", 2), ("Gender", 3)]),
        'HD': ("Health Coverage", [("Maintenance Type", 1), ("Insurance Line", 3)]),
    },
    '820': {
        'BPR': ("Financial Information", [("Transaction Type", 1), ("Amount", 2), ("Credit/Debit", 3)]),
        'DTM': ("Date/Time Reference", [("Qualifier", 1), ("Date", 2)]),
        'RMR': ("Remittance Advice", [("Qualifier", 1), ("Reference ID", 2), ("Payment Action", 3)]),
    },
}

def _value(segment: Segment, position: int) -> str:
    if segment.tag == 'ISA':
        return interchange_field(segment, position)
    return segment.get_element(position) or ""

def describe_segment(segment: Segment, transaction_type: str = 'unknown') -> str:
    """Human-readable one-line description of a segment, e.g. 'Member Level Detail - Indicator: Y, Relationship: 18'."""
    description = FORMAT_DESCRIPTIONS.get(transaction_type, {}).get(segment.tag) or ENVELOPE_DESCRIPTIONS.get(segment.tag)
    if description is None:
        return f"{segment.tag} Segment - {', '.join(segment.elements)}"

    title, labelled_positions = description
    details = ", ".join(f"{label}: {_value(segment, position)}" for label, position in labelled_positions)
    return f"{title} - {details}"
