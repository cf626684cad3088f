"""
SCPI command blocks for the Keysight 33500B series.

Builders here are pure: they return :class:`CommandBlock` objects and never
touch the instrument. A block is written in one piece, so the order of its
lines is the order the instrument applies them. Outputs are always switched
off before a reconfiguration that could glitch them, and nothing in here
switches an output back on except :func:`output_block` with ``enabled=True``.
"""

import math
from enum import Enum

from .errors import ConfigurationError
from .options import TriggerConfig, normalize_channels, validate_channel
from .waveform_codec import STORED_EXTENSION


VOLTAGE_SAFETY_THRESHOLD = 0.95

RESET_FREQUENCY = "1MHz"
RESET_AMPLITUDE = 0.1
RESET_OFFSET = 0

IDN_QUERY = "*IDN?"
TRIGGER_COMMAND = "*TRG"
VOLATILE_CATALOG_QUERY = "DATA:VOL:CAT?"


def num(value):
    """Render a number the way the instrument parser expects it."""
    return format(value, ".10g")


class CommandBlock:
    """An ordered group of command lines written as one message."""

    def __init__(self, lines=()):
        self.lines = tuple(lines)

    @property
    def text(self):
        return "\n".join(self.lines)

    def __add__(self, other):
        return CommandBlock(self.lines + tuple(other.lines))

    def __iter__(self):
        return iter(self.lines)

    def __len__(self):
        return len(self.lines)

    def __eq__(self, other):
        if isinstance(other, CommandBlock):
            return self.lines == other.lines
        return NotImplemented

    def __repr__(self):
        return f"CommandBlock({list(self.lines)!r})"


# ==========================================
# OUTPUT / RESET / MEMORY
# ==========================================

def output_block(channels, enabled):
    state = "ON" if enabled else "OFF"
    return CommandBlock(f"OUTP{ch} {state}" for ch in normalize_channels(channels))


def reset_block(channels=(1, 2)):
    """Known idle state: low amplitude sine on every channel, outputs off."""
    channels = normalize_channels(channels)
    apply = CommandBlock(
        f"SOUR{ch}:APPLY:SIN {RESET_FREQUENCY},{num(RESET_AMPLITUDE)},{num(RESET_OFFSET)}"
        for ch in channels
    )
    return apply + output_block(channels, False)


def clear_memory_block(channel):
    """Output off on both sides of the volatile memory clear."""
    channel = validate_channel(channel)
    return CommandBlock([
        f"OUTP{channel} OFF",
        f"SOUR{channel}:DATA:VOL:CLE",
        f"OUTP{channel} OFF",
    ])


# ==========================================
# PULSE
# ==========================================

def derive_pulse_timing(config):
    """Fill in the missing member of (duty cycle, duration, repetition frequency).

    Two of the three must be given; zero counts as not given.

    Returns:
        tuple: (repetition_frequency, duration)
    """
    duty = config.duty_cycle or None
    duration = config.duration or None
    frequency = config.repetition_frequency or None
    given = sum(v is not None for v in (duty, duration, frequency))
    if given < 2:
        raise ConfigurationError(
            "Need 2 out of the following: duty_cycle, duration, or repetition_frequency"
        )
    if given == 3:
        if not math.isclose(duration, frequency * duty / 100, rel_tol=1e-9):
            raise ConfigurationError(
                "duty_cycle, duration and repetition_frequency are inconsistent; give only two."
            )
        return frequency, duration
    if frequency is None:
        frequency = duration * 100 / duty
    elif duration is None:
        duration = frequency * duty / 100
    return frequency, duration


def pulse_block(config):
    ch = config.channel
    frequency, duration = derive_pulse_timing(config)
    return CommandBlock([
        f"SOUR{ch}:APPLY:PULSE {num(frequency)}hz",
        f"SOUR{ch}:FUNC:PULSE:WIDTH {num(duration)}",
        f"OUTP{ch} OFF",
        f"SOUR{ch}:VOLT +{num(config.amplitude)}",
    ])


# ==========================================
# MODULATION / TRIGGER
# ==========================================

def modulation_block(config):
    """Amplitude-modulate the carrier channel from the other channel."""
    carrier, source = config.carrier, config.channel
    lines = [f"SOUR{carrier}:AM:SOUR CH{source}"]
    if config.depth is not None:
        lines.append(f"SOUR{carrier}:AM:DEPT {num(config.depth)}")
    lines.append(f"SOUR{carrier}:AM:STATE 1")
    lines.append(f"OUTP{source} OFF")
    return CommandBlock(lines)


def trigger_block(config):
    """One waveform cycle per trigger on each selected channel."""
    lines = []
    for ch in config.channels:
        lines += [
            f"SOUR{ch}:BURST:MODE TRIG",
            f"TRIG{ch}:SOUR {config.source}",
            f"SOUR{ch}:BURST:NCYC 1",
            f"SOUR{ch}:BURST:STATE 1",
        ]
        if config.source == "TIM":
            lines.append(f"TRIG{ch}:TIM {num(config.trig_timer)}")
    return CommandBlock(lines)


def software_trigger_block():
    # channel 2 goes back to bus triggering after every software trigger
    return CommandBlock([TRIGGER_COMMAND]) + trigger_block(
        TriggerConfig(source="BUS", channels=2)
    )


# ==========================================
# ARBITRARY WAVEFORMS / STATES
# ==========================================

def load_waveform_block(name, config):
    ch = config.channel
    target = f"{config.path}{name}"
    return CommandBlock([
        f"SOUR{ch}:VOLT:UNIT VPP",
        f"SOUR{ch}:FREQ:MODE CW",
        f"SOUR{ch}:FUNC ARB",
        f'MMEM:LOAD:DATA{ch} "{target}"',
        f'SOUR{ch}:FUNC:ARB "{target}"',
        f"SOUR{ch}:FUNC:ARB:SRAT {num(config.sample_rate)}",
        f"SOUR{ch}:VOLT 0.01 VPP",
        f"SOUR{ch}:VOLT:OFFS 0.00",
    ])


def load_state_block(name, config):
    return CommandBlock([f'MMEM:LOAD:STAT "{config.path}{name}"'])


def upload_block(name, payload, sample_rate, config):
    """Send DAC codes, select them, apply them and save a copy to storage."""
    ch = config.channel
    return CommandBlock([
        f"SOUR{ch}:DATA:ARB:DAC {name},{payload}",
        f"SOUR{ch}:FUNC:ARB {name}",
        f"SOUR{ch}:APPLY:ARB {num(sample_rate)},{num(config.amplitude)},0",
        f'MMEM:STORE:DATA "{config.path}{name}.{STORED_EXTENSION}"',
    ])


# ==========================================
# VOLTAGE
# ==========================================

class VoltageCheck(Enum):
    SAFE = "safe"
    CONFIRMATION_REQUIRED = "confirmation_required"


def check_voltage(volts, threshold=VOLTAGE_SAFETY_THRESHOLD):
    if volts <= 0:
        raise ConfigurationError(f"Voltage must be positive, got {volts}")
    if volts > threshold:
        return VoltageCheck.CONFIRMATION_REQUIRED
    return VoltageCheck.SAFE


def voltage_block(channel, volts):
    channel = validate_channel(channel)
    return output_block((1, 2), False) + CommandBlock([f"SOUR{channel}:VOLT +{num(volts)}"])


# ==========================================
# QUERIES
# ==========================================

def catalog_query(folder):
    return f'MMEM:CAT:DATA:ARB? "{folder}"'


def crest_factor_query(target):
    return f'DATA:ATTR:CFAC? "{target}"'


def peak_to_peak_query(target):
    return f'DATA:ATTR:PTP? "{target}"'
