import pytest

from edi_models import Transaction
from edi_parser import parse_edi_content
from edi_tokenizer import tokenize
from edi_validator import EdiValidator, ValidatorSettings, validate

pytestmark = pytest.mark.unit

ISA = "ISA*00*          *00*          *ZZ*SENDER         *ZZ*RECEIVER       *250930*1200*^*00501*000000001*0*P*:"

COMPLETE_834 = "\n".join([
    ISA,
    "GS*BE*SENDER*RECEIVER*20250930*1200*1*X*005010X220A1",
    "ST*834*0001*005010X220A1",
    "BGN*00*12345*20250930*120000",
    "N1*P5*ACME HEALTH PLAN*FI*123456789",
    "INS*Y*18*021*28*A",
    "NM1*IL*1*SMITH*JOHN",
    "SE*6*0001",
    "GE*1*1",
    "IEA*1*000000001",
])

def _issue_ids(report):
    return [issue.id for issue in report.all_issues]

def test_required_segment_completeness():
    report = validate(parse_edi_content(COMPLETE_834))
    assert report.is_valid is True
    assert report.total_issues == 0
    assert report.all_issues == []

def test_sample_interchanges_are_valid(parsed_834, parsed_820):
    for transaction in (parsed_834, parsed_820):
        report = validate(transaction)
        assert report.is_valid, _issue_ids(report)
        assert report.total_issues == 0

def test_minimal_envelope_scenario(minimal_envelope_content: str):
    transaction = parse_edi_content(minimal_envelope_content)
    assert transaction.type == "unknown"

    report = validate(transaction)
    assert report.is_valid is True
    assert report.critical_issues == []
    assert "control-number-mismatch" not in _issue_ids(report)

def test_missing_required_segments():
    content = COMPLETE_834.replace("BGN*00*12345*20250930*120000\n", "")
    report = validate(parse_edi_content(content))
    assert report.is_valid is False
    missing = [i for i in report.critical_issues if i.id == "missing-BGN"]
    assert len(missing) == 1
    assert missing[0].rule == "required_segment"
    assert missing[0].related_segment.tag == "ISA"

def test_envelope_not_first():
    content = "GS*BE*S*R*20250930*1200*1*X*005010X220A1\n" + COMPLETE_834
    report = validate(parse_edi_content(content))
    assert "isa-not-first" in [i.id for i in report.critical_issues]

def test_envelope_not_last():
    report = validate(parse_edi_content(COMPLETE_834 + "\nGS*BE"))
    assert "iea-not-last" in [i.id for i in report.critical_issues]
    assert report.is_valid is False

def test_control_number_mismatch():
    content = COMPLETE_834.replace("IEA*1*000000001", "IEA*1*000000002")
    report = validate(parse_edi_content(content))
    issue = next(i for i in report.critical_issues if i.id == "control-number-mismatch")
    assert issue.related_segment.tag == "IEA"
    assert "000000001" in issue.description
    assert "000000002" in issue.description

def test_control_numbers_compared_after_trimming():
    content = COMPLETE_834.replace("IEA*1*000000001", "IEA*1*000000001  ")
    report = validate(parse_edi_content(content))
    assert "control-number-mismatch" not in _issue_ids(report)

def test_isa_insufficient_elements():
    report = validate(Transaction(type="unknown", segments=tokenize("ISA*00*01\nIEA*1*1")))
    assert "isa-insufficient-elements-1" in [i.id for i in report.critical_issues]

def test_isa_invalid_date_is_warning():
    content = COMPLETE_834.replace("*250930*", "*2509*")
    report = validate(parse_edi_content(content))
    assert report.is_valid is True
    assert [i.id for i in report.warnings] == ["isa-invalid-date-1"]
    assert report.total_issues == 1

def test_dtp_rules():
    content = COMPLETE_834.replace("SE*6*0001", "DTP*348*D8*2025-01-01\nDTP*349\nSE*8*0001")
    report = validate(parse_edi_content(content))
    warning_ids = [i.id for i in report.warnings]
    assert "dtp-invalid-date-8" in warning_ids
    assert "dtp-insufficient-elements-9" in warning_ids

def test_dtp_non_d8_format_is_not_checked():
    content = COMPLETE_834.replace("SE*6*0001", "DTP*348*RD8*20250101-20251231\nSE*7*0001")
    report = validate(parse_edi_content(content))
    assert report.warnings == []

def test_dmg_rules():
    content = COMPLETE_834.replace("SE*6*0001", "DMG*D8*1985-06-15*X\nSE*7*0001")
    report = validate(parse_edi_content(content))
    warning_ids = [i.id for i in report.warnings]
    assert "dmg-invalid-birthdate-8" in warning_ids
    assert "dmg-invalid-gender-8" in warning_ids

def test_orphaned_nm1():
    content = COMPLETE_834.replace("INS*Y*18*021*28*A\n", "")
    report = validate(parse_edi_content(content))
    assert any(i.id.startswith("orphaned-nm1-") for i in report.warnings)

def test_orphan_distance_is_configurable():
    filler = "\n".join(f"REF*ZZ*{n}" for n in range(3))
    content = COMPLETE_834.replace("INS*Y*18*021*28*A\n", f"INS*Y*18*021*28*A\n{filler}\n")
    transaction = parse_edi_content(content)

    assert not any(i.id.startswith("orphaned-nm1-") for i in validate(transaction).warnings)

    strict = EdiValidator(settings=ValidatorSettings(orphan_distance=2)).validate(transaction)
    assert any(i.id.startswith("orphaned-nm1-") for i in strict.warnings)

def _ins_then_nm1(gap: int) -> str:
    """834 whose NM1*IL sits exactly `gap` segments after its INS."""
    filler = "".join(f"REF*ZZ*{n}\n" for n in range(gap - 1))
    return COMPLETE_834.replace("INS*Y*18*021*28*A\n", f"INS*Y*18*021*28*A\n{filler}")

def test_nm1_at_orphan_distance_is_not_flagged():
    report = validate(parse_edi_content(_ins_then_nm1(10)))
    assert not any(i.id.startswith("orphaned-nm1-") for i in report.warnings)

def test_nm1_beyond_orphan_distance_is_flagged():
    report = validate(parse_edi_content(_ins_then_nm1(11)))
    assert "orphaned-nm1-17" in [i.id for i in report.warnings]

def test_820_missing_bpr():
    transaction = Transaction(type="820", segments=tokenize("ST*820*0001\nN1*PR*PAYER"))
    report = validate(transaction)
    assert "missing-bpr" in [i.id for i in report.critical_issues]

def test_820_invalid_amount():
    transaction = Transaction(type="820", segments=tokenize("BPR*C*125000.5*C*ACH"))
    report = validate(transaction)
    assert "bpr-invalid-amount-1" in [i.id for i in report.warnings]

def test_unknown_segment_is_info_only():
    content = COMPLETE_834.replace("SE*6*0001", "ZZZ*1\nSE*7*0001")
    report = validate(parse_edi_content(content))
    assert report.is_valid is True
    assert report.total_issues == 0
    assert [i.id for i in report.info_issues] == ["unknown-segment-8"]

def test_issue_ids_are_deduplicated():
    transaction = Transaction(type="834", segments=[])
    report = validate(transaction)
    ids = _issue_ids(report)
    assert len(ids) == len(set(ids))

def test_segments_annotated_after_validation():
    content = COMPLETE_834.replace("IEA*1*000000001", "IEA*1*000000009")
    transaction = parse_edi_content(content)
    validate(transaction)
    iea = transaction.find_segment("IEA")
    assert iea.is_valid is False
    assert "Control number mismatch" in iea.errors

def test_validation_is_repeatable(parsed_834):
    first = validate(parsed_834)
    second = validate(parsed_834)
    assert _issue_ids(first) == _issue_ids(second)
