import pytest
from PyQt5.QtCore import QCoreApplication

from notches import Notch, LeverConfig, GATE, LINEAR


@pytest.fixture(scope="session", autouse=True)
def qt_app():
    app = QCoreApplication.instance() or QCoreApplication([])
    yield app


@pytest.fixture
def reverser():
    return LeverConfig("reverser", [
        Notch(0, GATE, value=-1.0, input_min=0.0, input_max=0.33, sim_input_min=0.0, sim_input_max=0.1, description="Reverse"),
        Notch(1, GATE, value=0.0, input_min=0.33, input_max=0.67, sim_input_min=0.45, sim_input_max=0.55, description="Neutral"),
        Notch(2, GATE, value=1.0, input_min=0.67, input_max=1.0, sim_input_min=0.9, sim_input_max=1.0, description="Forward"),
    ], value_endpoint="CurrentDrivableActor/Reverser(Lever).InputValue")


@pytest.fixture
def master_controller():
    # Brake gate, linear brake zone, neutral gate, linear power zone
    return LeverConfig("master", [
        Notch(0, GATE, value=-1.0, input_min=0.0, input_max=0.1, sim_input_min=0.0, sim_input_max=0.04),
        Notch(1, LINEAR, min_value=-0.9, max_value=-0.1, input_min=0.1, input_max=0.45, sim_input_min=0.04, sim_input_max=0.46),
        Notch(2, GATE, value=0.0, input_min=0.45, input_max=0.55, sim_input_min=0.48, sim_input_max=0.52),
        Notch(3, LINEAR, min_value=0.1, max_value=1.0, input_min=0.55, input_max=1.0, sim_input_min=0.54, sim_input_max=1.0),
    ], value_endpoint="CurrentDrivableActor/MasterController.InputValue")
