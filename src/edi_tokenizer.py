import logging
import re
from typing import List

from edi_models import Segment

logger = logging.getLogger(__name__)

# Input is pre-split by physical line, so '~' (usually the segment terminator) and
# '^' (the ISA11 repetition separator) are treated as field delimiters alongside '*'.
DELIMITER_PATTERN = re.compile(r'[*~^]')
LINE_PATTERN = re.compile(r'\r?\n')

ISA_REPETITION_SEPARATOR = '^'
ISA_ELEMENT_COUNT = 16

def split_line(line: str) -> List[str]:
    return DELIMITER_PATTERN.split(line)

def tokenize(raw_content: str) -> List[Segment]:
    """
    Split raw EDI text into segments, one per non-blank physical line.
    Line numbers are the 1-based index in the unfiltered line list. Never raises.
    """
    segments: List[Segment] = []
    for index, line in enumerate(LINE_PATTERN.split(raw_content or "")):
        clean_line = line.strip()
        if not clean_line:
            continue
        parts = split_line(clean_line)
        segments.append(Segment(tag=parts[0], elements=parts[1:], raw_line=clean_line, line_number=index + 1))
    logger.debug(f"Tokenized {len(segments)} segments.")
    return segments

def interchange_fields(segment: Segment) -> List[str]:
    """
    Positional ISA elements with the ISA11 repetition separator restored.

    A literal '^' in ISA11 is split like any other delimiter and leaves two empty
    tokens in its place. They are collapsed back so that ISA12-ISA16 keep their
    standard positions, including when ISA16 itself is missing.
    """
    elements = list(segment.elements)
    if (len(elements) >= ISA_ELEMENT_COUNT
            and elements[10] == '' and elements[11] == ''):
        elements = elements[:10] + [ISA_REPETITION_SEPARATOR] + elements[12:]
    return elements

def interchange_field(segment: Segment, position: int) -> str:
    """ISA element by 1-based position from the normalized view, '' when absent."""
    elements = interchange_fields(segment)
    if 1 <= position <= len(elements):
        return elements[position - 1]
    return ""
