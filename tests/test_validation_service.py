"""
Unit tests for the EDI validation service.
"""

import pytest
import json
from unittest.mock import patch

from validation_service import EDIValidationService, ValidationResult

pytestmark = pytest.mark.unit

class TestEDIValidationService:
    """Test cases for EDI validation service."""

    def setup_method(self):
        """Set up test fixtures."""
        self.validation_service = EDIValidationService()

    def test_validation_service_init(self):
        """Test validation service initialization."""
        assert self.validation_service is not None
        assert self.validation_service.reference_manager is not None

    def test_validation_success_with_valid_edi(self, sample_834_content: str):
        """Test successful validation with valid EDI content."""
        result = self.validation_service.validate_edi(sample_834_content)

        assert isinstance(result, ValidationResult)
        assert result.valid
        assert result.findings == []
        assert result.transaction.type == "834"
        assert result.report.is_valid

    def test_validation_with_empty_content(self):
        """Empty content parses to an unknown transaction with nothing to report."""
        result = self.validation_service.validate_edi(edi_content="")

        assert isinstance(result, ValidationResult)
        assert result.valid
        assert result.transaction.segments == []

    def test_findings_carry_code_and_location(self, minimal_envelope_content: str):
        content = minimal_envelope_content.replace("IEA*1*000000001", "IEA*1*000000009")
        result = self.validation_service.validate_edi(content)

        assert not result.valid
        finding = next(f for f in result.findings if f.code == "control-number-mismatch")
        assert finding.level == "error"
        assert finding.message == "Control number mismatch"
        assert finding.location == {"segment_id": "IEA", "line_number": 2}

    def test_warning_and_info_levels(self, minimal_envelope_content: str):
        content = minimal_envelope_content.replace("*250930*", "*2509*").replace("IEA", "ZZZ*1\nIEA")
        result = self.validation_service.validate_edi(content)

        levels = {f.code: f.level for f in result.findings}
        assert levels["isa-invalid-date-1"] == "warning"
        assert levels["unknown-segment-2"] == "info"
        assert result.valid

    def test_unexpected_error_becomes_finding(self, sample_834_content: str):
        """The service boundary never raises."""
        with patch("validation_service.EdiParser", side_effect=RuntimeError("boom")):
            result = self.validation_service.validate_edi(sample_834_content)

        assert not result.valid
        assert len(result.findings) == 1
        assert result.findings[0].code == "VALIDATION_ERROR"
        assert "boom" in result.findings[0].message
        assert result.findings[0].location == {"segment_id": "DOCUMENT", "line_number": 1}
        assert result.transaction is None

    def test_partner_specific_reference_tables(self, tmp_path, minimal_envelope_content: str):
        """A partner override that requires ST makes the bare envelope invalid for that partner only."""
        partner_dir = tmp_path / "partner-specific" / "partner-a"
        partner_dir.mkdir(parents=True)
        (partner_dir / "default.json").write_text(json.dumps({
            "formats": {
                "999": {
                    "code": "999", "name": "Ack", "description": "", "category": "healthcare",
                    "required_segments": ["ST"], "business_context": "acknowledgment",
                }
            },
            "segment_definitions": {"ISA": "Interchange Control Header", "IEA": "Interchange Control Trailer"},
            "fallback_patterns": [{"format_code": "999", "markers": ["isa*", "iea*"]}],
        }))
        service = EDIValidationService(reference_path=str(tmp_path))

        assert service.validate_edi(minimal_envelope_content).valid
        partner_result = service.validate_edi(minimal_envelope_content, partner_id="partner-a")
        assert partner_result.transaction.type == "999"
        assert "missing-ST" in [f.code for f in partner_result.findings]
