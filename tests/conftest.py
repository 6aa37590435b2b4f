import pytest
import sys
import os
import logging

# Add src directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from edi_models import Transaction
from edi_parser import EdiParser

# ==============================================================================
# PYTEST CONFIGURATION & HOOKS
# ==============================================================================

def pytest_configure(config):
    """Configure pytest settings and markers."""
    config.addinivalue_line("markers", "unit: Pure unit tests with no external dependencies.")
    config.addinivalue_line("markers", "integration: Tests exercising the full parse, validate and convert pipeline.")

@pytest.fixture(scope="session", autouse=True)
def setup_test_environment(pytestconfig):
    """Set up test environment with logging configuration."""
    # Use pytest's log_cli_level if available, otherwise default to INFO
    log_level = pytestconfig.getoption("log_cli_level") or "INFO"
    logging.basicConfig(
        level=log_level.upper(),
        format="[%(asctime)s] [%(levelname)s] [%(name)s:%(lineno)d] - %(message)s",
        stream=sys.stdout,
        force=True,
    )
    logging.info(f"Test logging configured with level: {log_level.upper()}")
    yield

# ==============================================================================
# SAMPLE INTERCHANGES
# ==============================================================================

SAMPLE_834 = """ISA*00*          *00*          *ZZ*SENDER         *ZZ*RECEIVER       *250930*1200*^*00501*000000001*0*P*:~
GS*BE*SENDER*RECEIVER*20250930*1200*1*X*005010X220A1~
ST*834*0001*005010X220A1~
BGN*00*12345*20250930*120000****2~
N1*P5*ACME HEALTH PLAN*FI*123456789~
N1*IN*EMPLOYER GROUP*FI*987654321~
INS*Y*18*025*28*A***FT~
REF*0F*MEM123456789~
REF*1L*GRP001~
NM1*IL*1*SMITH*JOHN*A***34*987654321~
PER*IP**HP*5551234567~
N3*123 MAIN ST~
N4*ANYTOWN*CA*90001~
DMG*D8*19850615*M~
HD*025**HLT*EMP~
DTP*348*D8*20250101~
REF*1L*PLAN001~
INS*N*01*025*28*A***PT~
REF*0F*DEP987654321~
NM1*IL*1*SMITH*JANE*B***34*123456789~
N3*123 MAIN ST~
N4*ANYTOWN*CA*90001~
DMG*D8*19880420*F~
HD*025**HLT*DEP~
DTP*348*D8*20250101~
INS*N*01*025*28*A***CH~
REF*0F*DEP123456780~
NM1*IL*1*SMITH*ROBERT*C***34*234567890~
N3*123 MAIN ST~
N4*ANYTOWN*CA*90001~
DMG*D8*20150310*M~
HD*025**HLT*DEP~
DTP*348*D8*20250101~
SE*32*0001~
GE*1*1~
IEA*1*000000001~"""

SAMPLE_820 = """ISA*00*          *00*          *ZZ*PAYER          *ZZ*PAYEE          *250930*1200*^*00501*000000002*0*P*:~
GS*RA*PAYER*PAYEE*20250930*1200*2*X*005010~
ST*820*0002~
BPR*C*125000.00*C*ACH*CTX*01*021000021*DA*123456789**01*021000022*DA*987654321**20250930~
TRN*1*PAY123456*1234567890~
N1*PR*ACME HEALTH PLAN*FI*123456789~
N1*PE*PROVIDER GROUP*FI*987654321~
ENT*1*PR~
RMR*IV*INV123456**125000.00~
DTM*097*20250930~
SE*9*0002~
GE*1*2~
IEA*1*000000002~"""

MINIMAL_ENVELOPE = (
    "ISA*00*          *00*          *ZZ*SENDER*ZZ*RECEIVER*250930*1200*^*00501*000000001*0*P*:\n"
    "IEA*1*000000001"
)

@pytest.fixture
def sample_834_content() -> str:
    return SAMPLE_834

@pytest.fixture
def sample_820_content() -> str:
    return SAMPLE_820

@pytest.fixture
def minimal_envelope_content() -> str:
    return MINIMAL_ENVELOPE

@pytest.fixture
def parsed_834(sample_834_content) -> Transaction:
    return EdiParser(sample_834_content).parse()

@pytest.fixture
def parsed_820(sample_820_content) -> Transaction:
    return EdiParser(sample_820_content).parse()
