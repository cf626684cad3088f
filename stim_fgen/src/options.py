"""
Per-operation options.

Every driver operation takes keyword options. Each operation has a frozen
dataclass listing the names it understands with their defaults;
``from_options`` refuses anything else so a typo never reaches the
instrument as a silently ignored setting.
"""

import numbers
from dataclasses import dataclass, fields
from typing import Optional, Tuple

from .errors import ConfigurationError


CHANNELS = (1, 2)
TRIGGER_SOURCES = ("EXT", "BUS", "TIM")
DEFAULT_SAMPLING_RATE = 1000000


def validate_channel(channel):
    """Return ``channel`` as a plain int; floats and bools are refused."""
    if (
        isinstance(channel, bool)
        or not isinstance(channel, numbers.Integral)
        or channel not in CHANNELS
    ):
        raise ConfigurationError(
            f"Invalid channel {channel!r}. Must be one of: {list(CHANNELS)}"
        )
    return int(channel)


def normalize_channels(channels):
    """Accept ``1``, ``2``, ``[1, 2]``, ``(2,)`` ... and return a sorted tuple."""
    if isinstance(channels, numbers.Integral):
        channels = (channels,)
    try:
        selected = tuple(sorted({validate_channel(channel) for channel in channels}))
    except TypeError:
        raise ConfigurationError(f"Invalid channel selection {channels!r}") from None
    if not selected:
        raise ConfigurationError("At least one channel must be selected.")
    return selected


class _Options:
    @classmethod
    def from_options(cls, **options):
        allowed = {f.name for f in fields(cls)}
        unknown = sorted(set(options) - allowed)
        if unknown:
            raise ConfigurationError(
                f"{', '.join(unknown)} is not a valid field for {cls.__name__}. "
                f"Valid fields: {sorted(allowed)}"
            )
        return cls(**options)


@dataclass(frozen=True)
class ChannelSelection(_Options):
    channels: Tuple[int, ...] = CHANNELS

    def __post_init__(self):
        object.__setattr__(self, "channels", normalize_channels(self.channels))


@dataclass(frozen=True)
class PulseConfig(_Options):
    duty_cycle: Optional[float] = None
    duration: Optional[float] = None
    repetition_frequency: Optional[float] = None
    channel: int = 2
    amplitude: float = 0.6

    def __post_init__(self):
        object.__setattr__(self, "channel", validate_channel(self.channel))
        if self.amplitude <= 0:
            raise ConfigurationError(f"Pulse amplitude must be positive, got {self.amplitude}")


@dataclass(frozen=True)
class ModulationConfig(_Options):
    channel: int = 2
    depth: Optional[float] = None

    def __post_init__(self):
        object.__setattr__(self, "channel", validate_channel(self.channel))
        if self.depth is not None and not 0 <= self.depth <= 120:
            raise ConfigurationError(f"AM depth must be 0-120 %, got {self.depth}")

    @property
    def carrier(self):
        """The channel that is modulated and drives the output."""
        return 1 if self.channel == 2 else 2


@dataclass(frozen=True)
class TriggerConfig(_Options):
    source: str = "EXT"
    channels: Tuple[int, ...] = CHANNELS
    trig_timer: float = 1

    def __post_init__(self):
        source = str(self.source).upper()
        if source not in TRIGGER_SOURCES:
            raise ConfigurationError(
                f"Invalid trigger source '{self.source}'. Must be one of: {list(TRIGGER_SOURCES)}"
            )
        object.__setattr__(self, "source", source)
        object.__setattr__(self, "channels", normalize_channels(self.channels))
        if self.source == "TIM" and self.trig_timer <= 0:
            raise ConfigurationError(f"Trigger timer must be positive, got {self.trig_timer}")


@dataclass(frozen=True)
class ClearMemoryConfig(_Options):
    channel: int = 1

    def __post_init__(self):
        object.__setattr__(self, "channel", validate_channel(self.channel))


@dataclass(frozen=True)
class LoadWaveformConfig(_Options):
    path: str = "USB:\\"
    channel: int = 1
    sample_rate: float = DEFAULT_SAMPLING_RATE

    def __post_init__(self):
        object.__setattr__(self, "channel", validate_channel(self.channel))
        if self.sample_rate <= 0:
            raise ConfigurationError(f"Sample rate must be positive, got {self.sample_rate}")


@dataclass(frozen=True)
class LoadStateConfig(_Options):
    path: str = "USB:\\STATES\\"


@dataclass(frozen=True)
class UploadConfig(_Options):
    channel: int = 1
    path: str = "USB:\\"
    amplitude: float = 0.1

    def __post_init__(self):
        object.__setattr__(self, "channel", validate_channel(self.channel))
        if self.amplitude <= 0:
            raise ConfigurationError(f"Amplitude must be positive, got {self.amplitude}")


@dataclass(frozen=True)
class AttributeQueryConfig(_Options):
    path: str = "USB:\\"


def resolve(config_cls, config=None, **options):
    """Build the options object for an operation.

    Either a ready ``config`` instance or keyword options may be given, not
    both.
    """
    if config is not None:
        if options:
            raise ConfigurationError(
                f"Pass either a {config_cls.__name__} or keyword options, not both."
            )
        if not isinstance(config, config_cls):
            raise ConfigurationError(
                f"Expected {config_cls.__name__}, got {type(config).__name__}"
            )
        return config
    return config_cls.from_options(**options)
