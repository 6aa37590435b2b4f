import logging
import time
from typing import List

from edi_models import Segment, Transaction, TransactionMetadata, TransactionStatistics
from edi_tokenizer import ISA_ELEMENT_COUNT, interchange_fields, tokenize
from format_detector import detect_format, identify_payer, payer_info
from x12_formats import DEFAULT_REFERENCE_DATA, ReferenceData

logger = logging.getLogger(__name__)

class EdiParser:
    def __init__(self, edi_string: str, reference: ReferenceData = DEFAULT_REFERENCE_DATA):
        self.edi_string = edi_string or ""
        self.reference = reference
        self.all_segments: List[Segment] = tokenize(self.edi_string)
        logger.debug(f"Parser initialized with {len(self.all_segments)} segments.")

    def _annotate_definitions(self) -> int:
        """Attach human labels to segments and flag tags missing from the definition table."""
        unknown_count = 0
        for segment in self.all_segments:
            segment.definition = self.reference.segment_definitions.get(segment.tag)
            if not self.reference.is_known_segment(segment.tag):
                segment.is_valid = False
                segment.add_error(f"Unknown segment type: {segment.tag}")
                unknown_count += 1
                logger.debug(f"Unknown segment type '{segment.tag}' at line {segment.line_number}.")
            else:
                segment.is_valid = True
        return unknown_count

    def _extract_metadata(self) -> TransactionMetadata:
        isa_segment = next((s for s in self.all_segments if s.tag == 'ISA'), None)
        if isa_segment is None:
            return TransactionMetadata()

        fields = interchange_fields(isa_segment)
        if len(fields) < ISA_ELEMENT_COUNT:
            logger.warning(f"ISA segment at line {isa_segment.line_number} has {len(fields)} elements; metadata left empty.")
            return TransactionMetadata()

        return TransactionMetadata(
            sender=fields[5],
            receiver=fields[7],
            interchange_date=fields[8],
            control_number=fields[12],
            version_id=fields[11],
            test_indicator=fields[14],
        )

    def parse(self) -> Transaction:
        start = time.perf_counter()
        transaction_type = detect_format(self.all_segments, self.reference)
        error_count = self._annotate_definitions()

        transaction = Transaction(
            type=transaction_type,
            segments=self.all_segments,
            metadata=self._extract_metadata(),
        )

        payer_id = identify_payer(transaction, self.reference)
        if payer_id:
            transaction.payer = payer_info(payer_id, self.reference)
        transaction.business_context = self.reference.business_context(transaction_type)

        transaction.statistics = TransactionStatistics(
            total_segments=len(self.all_segments),
            error_count=error_count,
            warning_count=0,
            processing_time_ms=(time.perf_counter() - start) * 1000,
        )

        logger.info(
            f"Parsed {len(self.all_segments)} segments: type={transaction.type}, "
            f"payer={payer_id or 'unattributed'}, unknown segments={error_count}"
        )
        return transaction

def parse_edi_content(content: str, reference: ReferenceData = DEFAULT_REFERENCE_DATA) -> Transaction:
    return EdiParser(content, reference).parse()
