import pytest

from edi_parser import EdiParser, parse_edi_content

pytestmark = pytest.mark.unit

def test_parser_handles_empty_edi():
    """
    Tests that the parser handles completely empty EDI gracefully.
    """
    transaction = EdiParser(edi_string="").parse()
    assert transaction.type == "unknown"
    assert transaction.segments == []
    assert transaction.metadata.control_number == ""
    assert transaction.statistics.total_segments == 0

def test_parser_handles_whitespace_only_edi():
    transaction = parse_edi_content("   \n  \r\n  \t  ")
    assert transaction.segments == []

def test_parse_sample_834(parsed_834):
    assert parsed_834.type == "834"
    assert parsed_834.business_context == "enrollment"
    assert parsed_834.payer is None
    assert parsed_834.statistics.total_segments == len(parsed_834.segments) == 36
    assert parsed_834.statistics.error_count == 0
    assert parsed_834.statistics.processing_time_ms >= 0

def test_metadata_from_isa(parsed_834):
    metadata = parsed_834.metadata
    assert metadata.sender == "SENDER         "
    assert metadata.receiver == "RECEIVER       "
    assert metadata.interchange_date == "250930"
    assert metadata.control_number == "000000001"
    assert metadata.version_id == "00501"
    assert metadata.test_indicator == "P"

def test_metadata_empty_for_short_isa():
    transaction = parse_edi_content("ISA*00*          *00\nIEA*1*1")
    assert transaction.metadata.control_number == ""
    assert transaction.metadata.sender == ""

def test_segments_get_definitions(parsed_834):
    ins = parsed_834.find_segment("INS")
    assert ins.definition == "Member Level Detail"
    assert ins.is_valid is True
    assert ins.errors is None

def test_unknown_segments_are_flagged():
    transaction = parse_edi_content("ST*834*0001\nZZZ*1*2\nUNB*UNOA")
    unknown = transaction.find_segment("ZZZ")
    assert unknown.is_valid is False
    assert unknown.errors == ["Unknown segment type: ZZZ"]
    assert unknown.definition is None
    assert transaction.statistics.error_count == 1

    # Other-standard envelope tags are tolerated
    assert transaction.find_segment("UNB").is_valid is True

def test_payer_attached_when_identified():
    content = (
        "ISA*00*          *00*          *ZZ*AETNA          *ZZ*RECEIVER       *250930*1200*^*00501*000000001*0*P*:~\n"
        "ST*834*0001~\n"
        "IEA*1*000000001~"
    )
    transaction = parse_edi_content(content)
    assert transaction.payer is not None
    assert transaction.payer.id == "AETNA"
    assert transaction.payer.name == "Aetna Inc."

def test_unknown_type_has_no_business_context(minimal_envelope_content: str):
    transaction = parse_edi_content(minimal_envelope_content)
    assert transaction.type == "unknown"
    assert transaction.business_context is None
    assert transaction.metadata.control_number == "000000001"

def test_transaction_serializes_with_camel_case_aliases(parsed_820):
    data = parsed_820.model_dump(by_alias=True)
    assert data["businessContext"] == "payment"
    assert "rawLine" in data["segments"][0]
    assert "lineNumber" in data["segments"][0]
    assert "totalSegments" in data["statistics"]
