# tests/conftest.py
import sys
from pathlib import Path

import pytest

# Aggiunge src/ al path
sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

from automation.automation import Automation  # noqa: E402
from automation.automation_segment import (  # noqa: E402
    ConstantAutomationSegment,
    ExponentialAutomationSegment,
    LinearAutomationSegment,
    QuadraticAutomationSegment,
)
import shared.logger as logger_module  # noqa: E402


# =============================================================================
# LOGGER: stato globale pulito per ogni test
# =============================================================================

@pytest.fixture(autouse=True)
def quiet_automation_logger():
    """Nessun handler console/file durante i test; stato resettato dopo."""
    logger_module.configure_automation_logger(enabled=False)
    yield
    logger_module.configure_automation_logger()


# =============================================================================
# FIXTURES AUTOMATION
# =============================================================================

@pytest.fixture
def ramp_automation():
    """
    Costante 60 per 4 unità, poi rampa lineare 60 -> 40 per 4 unità.
    value(2) = 60, value(5) = 55, value(6) = 50, value(8+) = 40
    """
    return Automation([
        ConstantAutomationSegment(c=60, length=4),
        LinearAutomationSegment(y1=60, y2=40, length=4),
    ])


@pytest.fixture
def mixed_automation():
    """Una forma per tipo, tutte strettamente positive."""
    return Automation([
        ConstantAutomationSegment(c=2, length=1.5),
        LinearAutomationSegment(y1=2, y2=5, length=2),
        ExponentialAutomationSegment(y1=5, y2=1, yc=2, length=3),
        QuadraticAutomationSegment(y1=1, y2=3, yc=1.5, length=2.5),
    ])
