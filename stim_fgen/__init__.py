__version__ = "1.0.0"

from .src.device_manager import BufferDirection, DeviceManager, Transport
from .src.errors import ConfigurationError, ErrorRecord, StimFgenError, TransportError
from .src.keysight_33500b import (
    AttributeResult,
    BurstState,
    Function,
    Keysight_33500B,
    VoltageChangeResult,
    VoltageChangeStatus,
)
from .src.mock_instrument import MockFunctionGenerator
from .src.options import (
    AttributeQueryConfig,
    ChannelSelection,
    ClearMemoryConfig,
    LoadStateConfig,
    LoadWaveformConfig,
    ModulationConfig,
    PulseConfig,
    TriggerConfig,
    UploadConfig,
)
from .src.terminal import ColorPrinter
from .src.waveform_codec import Waveform, decode, encode

__all__ = [
    "AttributeQueryConfig",
    "AttributeResult",
    "BufferDirection",
    "BurstState",
    "ChannelSelection",
    "ClearMemoryConfig",
    "ColorPrinter",
    "ConfigurationError",
    "DeviceManager",
    "ErrorRecord",
    "Function",
    "Keysight_33500B",
    "LoadStateConfig",
    "LoadWaveformConfig",
    "MockFunctionGenerator",
    "ModulationConfig",
    "PulseConfig",
    "StimFgenError",
    "Transport",
    "TransportError",
    "TriggerConfig",
    "UploadConfig",
    "VoltageChangeResult",
    "VoltageChangeStatus",
    "Waveform",
    "decode",
    "encode",
]
