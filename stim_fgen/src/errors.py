"""Exception types and small result records shared by the driver."""

import re
from dataclasses import dataclass


class StimFgenError(Exception):
    """Base class for all errors raised by this package."""


class TransportError(StimFgenError, ConnectionError):
    """The instrument link could not be opened or is not open."""


class ConfigurationError(StimFgenError, ValueError):
    """Rejected before any command reached the instrument."""


_ERROR_LINE = re.compile(r'^\s*([+-]?\d+)\s*,\s*"?(.*?)"?\s*$')


@dataclass(frozen=True)
class ErrorRecord:
    """One entry drained from the instrument error queue."""

    code: int
    message: str

    @classmethod
    def parse(cls, line):
        """Parse a ``SYST:ERR?`` response such as ``-113,"Undefined header"``."""
        match = _ERROR_LINE.match(line)
        if not match:
            return cls(0, line.strip())
        return cls(int(match.group(1)), match.group(2))

    def __str__(self):
        return f"{self.code},\"{self.message}\""
