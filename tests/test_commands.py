import numpy as np
import pytest

from stim_fgen.src import commands
from stim_fgen.src.commands import CommandBlock, VoltageCheck
from stim_fgen.src.errors import ConfigurationError
from stim_fgen.src.options import (
    ChannelSelection,
    LoadStateConfig,
    LoadWaveformConfig,
    ModulationConfig,
    PulseConfig,
    TriggerConfig,
    UploadConfig,
    resolve,
)


def test_block_text_is_newline_joined():
    block = CommandBlock(["OUTP1 OFF", "OUTP2 OFF"]) + CommandBlock(["*TRG"])
    assert block.text == "OUTP1 OFF\nOUTP2 OFF\n*TRG"
    assert len(block) == 3


def test_num_formatting():
    assert commands.num(10.0) == "10"
    assert commands.num(0.6) == "0.6"
    assert commands.num(1000000) == "1000000"
    assert commands.num(1e-7) == "1e-07"


def test_reset_block_order():
    assert list(commands.reset_block()) == [
        "SOUR1:APPLY:SIN 1MHz,0.1,0",
        "SOUR2:APPLY:SIN 1MHz,0.1,0",
        "OUTP1 OFF",
        "OUTP2 OFF",
    ]


def test_clear_memory_block_brackets_clear_with_output_off():
    assert list(commands.clear_memory_block(1)) == [
        "OUTP1 OFF",
        "SOUR1:DATA:VOL:CLE",
        "OUTP1 OFF",
    ]


# ==========================================
# PULSE
# ==========================================

def test_pulse_duration_derived_from_frequency():
    cfg = PulseConfig(duty_cycle=10, repetition_frequency=100)
    assert commands.derive_pulse_timing(cfg) == (100, 10)


def test_pulse_frequency_derived_from_duration():
    cfg = PulseConfig(duty_cycle=10, duration=1)
    assert commands.derive_pulse_timing(cfg) == (10, 1)


def test_pulse_duty_not_needed_when_timing_given():
    cfg = PulseConfig(duration=0.002, repetition_frequency=50)
    assert commands.derive_pulse_timing(cfg) == (50, 0.002)


@pytest.mark.parametrize(
    "options",
    [{}, {"duty_cycle": 10}, {"duration": 1}, {"duty_cycle": 10, "duration": 0}],
)
def test_pulse_needs_two_of_three(options):
    with pytest.raises(ConfigurationError, match="Need 2 out of"):
        commands.derive_pulse_timing(PulseConfig(**options))


def test_pulse_three_values_must_agree():
    ok = PulseConfig(duty_cycle=10, duration=10, repetition_frequency=100)
    assert commands.derive_pulse_timing(ok) == (100, 10)
    with pytest.raises(ConfigurationError, match="inconsistent"):
        commands.derive_pulse_timing(PulseConfig(duty_cycle=10, duration=5, repetition_frequency=100))


def test_pulse_block():
    block = commands.pulse_block(PulseConfig(duty_cycle=10, repetition_frequency=100))
    assert list(block) == [
        "SOUR2:APPLY:PULSE 100hz",
        "SOUR2:FUNC:PULSE:WIDTH 10",
        "OUTP2 OFF",
        "SOUR2:VOLT +0.6",
    ]


# ==========================================
# MODULATION / TRIGGER
# ==========================================

def test_modulation_uses_other_channel_as_carrier():
    assert list(commands.modulation_block(ModulationConfig())) == [
        "SOUR1:AM:SOUR CH2",
        "SOUR1:AM:STATE 1",
        "OUTP2 OFF",
    ]
    assert list(commands.modulation_block(ModulationConfig(channel=1, depth=80))) == [
        "SOUR2:AM:SOUR CH1",
        "SOUR2:AM:DEPT 80",
        "SOUR2:AM:STATE 1",
        "OUTP1 OFF",
    ]


def test_trigger_block_for_both_channels():
    lines = list(commands.trigger_block(TriggerConfig()))
    assert lines == [
        "SOUR1:BURST:MODE TRIG",
        "TRIG1:SOUR EXT",
        "SOUR1:BURST:NCYC 1",
        "SOUR1:BURST:STATE 1",
        "SOUR2:BURST:MODE TRIG",
        "TRIG2:SOUR EXT",
        "SOUR2:BURST:NCYC 1",
        "SOUR2:BURST:STATE 1",
    ]


def test_trigger_block_timer_source_sets_interval():
    cfg = TriggerConfig(source="tim", channels=1, trig_timer=0.5)
    assert list(commands.trigger_block(cfg)) == [
        "SOUR1:BURST:MODE TRIG",
        "TRIG1:SOUR TIM",
        "SOUR1:BURST:NCYC 1",
        "SOUR1:BURST:STATE 1",
        "TRIG1:TIM 0.5",
    ]


def test_software_trigger_rearms_channel_two_on_bus():
    lines = list(commands.software_trigger_block())
    assert lines[0] == "*TRG"
    assert "TRIG2:SOUR BUS" in lines
    assert not any(line.startswith("TRIG1") for line in lines)


# ==========================================
# WAVEFORMS / VOLTAGE
# ==========================================

def test_load_waveform_block():
    block = commands.load_waveform_block("PULSE1", LoadWaveformConfig(channel=2, sample_rate=250000))
    assert list(block) == [
        "SOUR2:VOLT:UNIT VPP",
        "SOUR2:FREQ:MODE CW",
        "SOUR2:FUNC ARB",
        'MMEM:LOAD:DATA2 "USB:\\PULSE1"',
        'SOUR2:FUNC:ARB "USB:\\PULSE1"',
        "SOUR2:FUNC:ARB:SRAT 250000",
        "SOUR2:VOLT 0.01 VPP",
        "SOUR2:VOLT:OFFS 0.00",
    ]


def test_load_state_block():
    block = commands.load_state_block("protocol_a.sta", LoadStateConfig())
    assert block.text == 'MMEM:LOAD:STAT "USB:\\STATES\\protocol_a.sta"'


def test_upload_block():
    block = commands.upload_block("WAVE1", "-32767,0,32767", 1e6, UploadConfig(amplitude=0.2))
    assert list(block) == [
        "SOUR1:DATA:ARB:DAC WAVE1,-32767,0,32767",
        "SOUR1:FUNC:ARB WAVE1",
        "SOUR1:APPLY:ARB 1000000,0.2,0",
        'MMEM:STORE:DATA "USB:\\WAVE1.barb"',
    ]


def test_voltage_block_turns_both_outputs_off_first():
    assert list(commands.voltage_block(2, 0.5)) == ["OUTP1 OFF", "OUTP2 OFF", "SOUR2:VOLT +0.5"]


def test_check_voltage():
    assert commands.check_voltage(0.95) is VoltageCheck.SAFE
    assert commands.check_voltage(0.96) is VoltageCheck.CONFIRMATION_REQUIRED
    with pytest.raises(ConfigurationError):
        commands.check_voltage(0)


# ==========================================
# OPTIONS
# ==========================================

def test_channel_selection_normalizes():
    assert ChannelSelection(channels=[2, 1, 2]).channels == (1, 2)
    assert ChannelSelection(channels=2).channels == (2,)
    with pytest.raises(ConfigurationError):
        ChannelSelection(channels=3)
    with pytest.raises(ConfigurationError):
        ChannelSelection(channels=())


@pytest.mark.parametrize("channel", [1.0, 2.0, True, "1"])
def test_channel_must_be_an_integer(channel):
    with pytest.raises(ConfigurationError, match="Invalid channel"):
        PulseConfig(duty_cycle=10, repetition_frequency=100, channel=channel)
    with pytest.raises(ConfigurationError):
        ChannelSelection(channels=(channel,))
    with pytest.raises(ConfigurationError):
        commands.clear_memory_block(channel)


def test_numpy_channel_becomes_plain_int():
    assert PulseConfig(duty_cycle=10, repetition_frequency=100, channel=np.int64(1)).channel == 1
    assert type(UploadConfig(channel=np.int32(2)).channel) is int


def test_unknown_option_rejected():
    with pytest.raises(ConfigurationError, match="sourc is not a valid field"):
        TriggerConfig.from_options(sourc="BUS")


def test_invalid_trigger_source_rejected():
    with pytest.raises(ConfigurationError):
        TriggerConfig(source="IMM")


def test_resolve_accepts_config_or_options_not_both():
    cfg = PulseConfig(duty_cycle=1, duration=1)
    assert resolve(PulseConfig, cfg) is cfg
    assert resolve(PulseConfig, channel=1).channel == 1
    with pytest.raises(ConfigurationError):
        resolve(PulseConfig, cfg, channel=1)
    with pytest.raises(ConfigurationError):
        resolve(PulseConfig, TriggerConfig())
