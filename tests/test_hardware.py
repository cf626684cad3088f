"""
Checks against a real 33500B. Run with the instrument connected:

    STIM_FGEN_RESOURCE=USB0::0x0957::0x2C07::MY00000000::INSTR pytest -m hardware
"""

import os

import numpy as np
import pytest

from stim_fgen import Keysight_33500B


pytestmark = pytest.mark.hardware


@pytest.fixture(scope="module")
def awg():
    with Keysight_33500B(os.environ.get("STIM_FGEN_RESOURCE")) as session:
        yield session


def test_identity(awg):
    assert "335" in awg.identity


def test_reset_leaves_no_errors(awg):
    assert awg.reset() is False


def test_pulse_and_trigger(awg):
    assert awg.configure_pulse(duty_cycle=10, repetition_frequency=100) is False
    assert awg.configure_trigger(source="BUS", channels=2) is False
    assert awg.send_trigger() is False
    awg.stop()


def test_upload_and_query(awg):
    samples = np.sin(np.linspace(0, 2 * np.pi, 4000))
    assert awg.upload_waveform(samples, "STIMTEST", 1e6) is False
    assert "STIMTEST" in awg.waveforms_available("USB:\\")
    assert awg.clear_memory(channel=1) is False
