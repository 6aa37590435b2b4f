import pytest
import json
from pathlib import Path

from reference_manager import ReferenceDataManager
from x12_formats import DEFAULT_REFERENCE_DATA

pytestmark = pytest.mark.unit

def _tables(code: str, required):
    return {
        "formats": {
            code: {
                "code": code,
                "name": f"Format {code}",
                "description": "test format",
                "category": "healthcare",
                "required_segments": required,
                "business_context": "testing",
            }
        },
        "segment_definitions": {"ST": "Transaction Set Header", "SE": "Transaction Set Trailer"},
        "fallback_patterns": [],
    }

@pytest.fixture
def reference_dir(tmp_path: Path) -> Path:
    """Create a temporary directory with base and partner-specific reference tables."""
    (tmp_path / "default.json").write_text(json.dumps(_tables("834", ["ST", "SE"])))
    (tmp_path / "strict.json").write_text(json.dumps(_tables("834", ["ST", "BGN", "SE"])))

    partner_dir = tmp_path / "partner-specific" / "partner-a"
    partner_dir.mkdir(parents=True)
    (partner_dir / "default.json").write_text(json.dumps(_tables("834", ["ST", "INS", "SE"])))

    # Malformed tables
    (tmp_path / "malformed.json").write_text("{'invalid_json':}")
    (tmp_path / "wrong_shape.json").write_text(json.dumps({"formats": {"834": {"code": "834"}}}))

    return tmp_path

def test_loads_base_tables(reference_dir: Path):
    manager = ReferenceDataManager(str(reference_dir))
    assert sorted(manager.list_reference_tables()) == ["default", "strict"]

def test_get_reference_by_name(reference_dir: Path):
    manager = ReferenceDataManager(str(reference_dir))
    assert manager.get_reference("strict").required_segments("834") == ("ST", "BGN", "SE")
    assert manager.get_reference().required_segments("834") == ("ST", "SE")

def test_partner_specific_tables(reference_dir: Path):
    manager = ReferenceDataManager(str(reference_dir))
    tables = manager.get_reference(partner_id="partner-a")
    assert tables.required_segments("834") == ("ST", "INS", "SE")
    # Served from the cache on the second call
    assert manager.get_reference(partner_id="partner-a") is tables

def test_partner_without_override_uses_base(reference_dir: Path):
    manager = ReferenceDataManager(str(reference_dir))
    assert manager.get_reference(partner_id="partner-b").required_segments("834") == ("ST", "SE")

def test_unknown_name_falls_back_to_builtin(reference_dir: Path):
    manager = ReferenceDataManager(str(reference_dir))
    assert manager.get_reference("missing") is DEFAULT_REFERENCE_DATA

def test_no_base_path_uses_builtin():
    manager = ReferenceDataManager()
    assert manager.list_reference_tables() == []
    assert manager.get_reference(partner_id="partner-a") is DEFAULT_REFERENCE_DATA

def test_nonexistent_base_path(tmp_path: Path):
    manager = ReferenceDataManager(str(tmp_path / "nope"))
    assert manager.get_reference() is DEFAULT_REFERENCE_DATA

def test_reload_picks_up_new_tables(reference_dir: Path):
    manager = ReferenceDataManager(str(reference_dir))
    (reference_dir / "extra.json").write_text(json.dumps(_tables("820", ["BPR"])))
    manager.reload()
    assert "extra" in manager.list_reference_tables()
    assert manager.get_reference("extra").required_segments("820") == ("BPR",)
