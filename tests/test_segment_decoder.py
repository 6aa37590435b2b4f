import pytest

from edi_tokenizer import tokenize
from segment_decoder import describe_segment

pytestmark = pytest.mark.unit

def _segment(line: str):
    return tokenize(line)[0]

def test_describe_834_member_level_detail():
    assert describe_segment(_segment("INS*Y*18*021*28*A"), "834") == "Member Level Detail - Indicator: Y, Relationship: 18"

def test_describe_834_name_and_demographics():
    assert describe_segment(_segment("NM1*IL*1*SMITH*JOHN"), "834") == \
        "Individual Name - Type: IL, Last Name: SMITH, First Name: JOHN"
    assert describe_segment(_segment("DMG*D8*19850615*M"), "834") == \
        "Demographic Information - Date Format: D8, Birth Date: 19850615, Gender: M"

def test_describe_820_financial_information():
    assert describe_segment(_segment("BPR*C*125000.00*C*ACH"), "820") == \
        "Financial Information - Transaction Type: C, Amount: 125000.00, Credit/Debit: C"

def test_envelope_descriptions_are_shared(minimal_envelope_content: str):
    isa = tokenize(minimal_envelope_content)[0]
    expected = "Interchange Control Header - Authorization: 00, Security: 00, Sender: SENDER, Receiver: RECEIVER"
    for transaction_type in ("834", "820", "unknown"):
        assert describe_segment(isa, transaction_type) == expected

def test_format_specific_tags_fall_back_to_generic():
    # BPR is only described for 820 transactions
    assert describe_segment(_segment("BPR*C*10.00"), "834") == "BPR Segment - C, 10.00"

def test_missing_elements_render_empty():
    assert describe_segment(_segment("ST"), "834") == "Transaction Set Header - Type: , Control Number: "

def test_generic_description():
    assert describe_segment(_segment("ZZZ*1**3")) == "ZZZ Segment - 1, , 3"
