"""
Arbitrary waveform encoding for the 33500B DAC format.

Samples are rescaled so the waveform spans the full signed 16-bit range
and sent as comma separated decimal integers, e.g.
``SOUR1:DATA:ARB:DAC name,-32767,0,32767``. The physical amplitude is set
separately, so only the shape survives the transfer.
"""

import re
from dataclasses import dataclass

import numpy as np

from .errors import ConfigurationError


DAC_MAX = 32767
DAC_MIN = -32768
STORED_EXTENSION = "barb"


@dataclass(frozen=True)
class Waveform:
    """A named sample sequence waiting to be uploaded."""

    samples: np.ndarray
    name: str
    sample_rate: float

    @classmethod
    def create(cls, samples, name, sample_rate):
        if not name or not re.fullmatch(r"[A-Za-z][A-Za-z0-9_]*", name):
            raise ConfigurationError(
                f"Invalid waveform name '{name}'. Use a letter followed by letters, digits or '_'."
            )
        if sample_rate <= 0:
            raise ConfigurationError(f"Sample rate must be positive, got {sample_rate}")
        return cls(as_samples(samples), name, float(sample_rate))


@dataclass(frozen=True)
class EncodedWaveform:
    codes: np.ndarray
    scale: float
    offset: float

    def to_text(self):
        return serialize(self.codes)


def as_samples(samples):
    """Validate and convert to a 1-D float array."""
    arr = np.asarray(samples, dtype=float)
    if arr.ndim != 1:
        raise ConfigurationError(f"Waveform must be one-dimensional, got shape {arr.shape}")
    if arr.size == 0:
        raise ConfigurationError("Waveform has no samples.")
    if not np.all(np.isfinite(arr)):
        raise ConfigurationError("Waveform contains NaN or infinite samples.")
    return arr


def encode(samples):
    """Rescale ``samples`` to signed 16-bit DAC codes.

    ``scale`` is half the peak-to-peak range and ``offset`` the midpoint, so
    the minimum maps to -32767 and the maximum to +32767. A flat waveform
    has no range to scale and encodes to all zeros.

    Returns:
        EncodedWaveform: codes plus the scale/offset needed to decode them.
    """
    arr = as_samples(samples)
    lo, hi = float(arr.min()), float(arr.max())
    scale = 0.5 * (hi - lo)
    offset = lo + scale
    if scale == 0:
        return EncodedWaveform(np.zeros(arr.size, dtype=np.int16), 0.0, offset)
    codes = np.round((arr - offset) / scale * DAC_MAX)
    codes = np.clip(codes, DAC_MIN, DAC_MAX).astype(np.int16)
    return EncodedWaveform(codes, scale, offset)


def decode(encoded):
    """Map DAC codes back to the original sample units."""
    return encoded.codes.astype(float) / DAC_MAX * encoded.scale + encoded.offset


def serialize(codes):
    return ",".join(str(int(c)) for c in codes)


def parse_codes(text):
    """Inverse of :func:`serialize`."""
    text = text.strip()
    if not text:
        return np.zeros(0, dtype=np.int16)
    return np.array([int(tok) for tok in text.split(",")], dtype=np.int16)


def parse_catalog(response, extension=STORED_EXTENSION):
    """Extract stored waveform names from an ``MMEM:CAT:DATA:ARB?`` reply.

    The reply looks like ``used,free,"name.barb,ARB,size",...``; every name
    sits between a ``,"`` and the file extension.
    """
    pattern = re.compile(r',"([^"]*?)\.' + re.escape(extension))
    return {match.group(1) for match in pattern.finditer(response)}
