"""
Driver for the Keysight (Agilent) 33500B Series Function/Arbitrary Waveform Generator.
Instrument Type: Dual-Channel Arbitrary Waveform Generator (AWG)

Built for delivering stimulation waveforms: pulsed output at a chosen
duty cycle and repetition rate, AM of one channel by the other, single
cycle triggered bursts, and custom arbitrary waveforms uploaded from numpy
arrays or loaded from the instrument's USB storage.

IDN response: Agilent Technologies,33522B,<serial>,<firmware>
Interface: USB-B (USB-TMC)
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Set

from . import commands
from .buffer import BufferNegotiator
from .commands import VoltageCheck
from .device_manager import BufferDirection, DeviceManager
from .diagnostics import DiagnosticsLog
from .error_monitor import ErrorMonitor
from .errors import ConfigurationError, TransportError
from .options import (
    CHANNELS,
    DEFAULT_SAMPLING_RATE,
    AttributeQueryConfig,
    ChannelSelection,
    ClearMemoryConfig,
    LoadStateConfig,
    LoadWaveformConfig,
    ModulationConfig,
    PulseConfig,
    TriggerConfig,
    UploadConfig,
    resolve,
    validate_channel,
)
from .terminal import ColorPrinter
from .waveform_codec import Waveform, encode, parse_catalog


UPLOAD_BUFFER_MARGIN = 500
CATALOG_BUFFER_SIZE = 4000


class Function(Enum):
    SINE = "SIN"
    PULSE = "PULS"
    ARBITRARY = "ARB"
    MODULATED = "AM"


class BurstState(Enum):
    IDLE = "idle"
    ARMED = "armed"
    FIRED = "fired"


@dataclass
class Channel:
    """What the session last told one output channel to do."""

    number: int
    function: Function = Function.SINE
    enabled: bool = False
    amplitude: float = commands.RESET_AMPLITUDE
    waveform: Optional[str] = None
    burst: BurstState = BurstState.IDLE
    trigger_source: Optional[str] = None
    trigger_count: int = 0
    resident: Set[str] = field(default_factory=set)

    def reset(self):
        self.function = Function.SINE
        self.enabled = False
        self.amplitude = commands.RESET_AMPLITUDE
        self.waveform = None
        self.burst = BurstState.IDLE
        self.trigger_source = None
        self.trigger_count = 0
        self.resident.clear()


class VoltageChangeStatus(Enum):
    APPLIED = "applied"
    CONFIRMATION_REQUIRED = "confirmation_required"


@dataclass(frozen=True)
class VoltageChangeResult:
    status: VoltageChangeStatus
    had_error: bool = False

    @property
    def applied(self):
        return self.status is VoltageChangeStatus.APPLIED


@dataclass(frozen=True)
class AttributeResult:
    """Waveform attribute query; ``value`` is 0.0 when the waveform is not loaded."""

    value: float
    resident: bool

    def __float__(self):
        return self.value


class Keysight_33500B:
    """
    Session with one Keysight 33500B function generator.

    Every mutating operation writes its commands as a single block, then
    drains the instrument error queue once and returns ``True`` if the
    instrument complained. Those errors are logged, not raised; the
    commands have already been applied and the caller decides whether to
    ``reset()``. Bad options raise :class:`ConfigurationError` before
    anything is sent.

    A session owns its instrument: only one session per VISA resource may
    exist at a time and sessions cannot be copied.
    """

    _claimed = set()

    def __init__(
        self,
        resource_name=None,
        transport=None,
        log_path=None,
        sampling_rate=DEFAULT_SAMPLING_RATE,
        reset_on_connect=True,
    ):
        if transport is None:
            if resource_name is None:
                raise ConfigurationError("Either resource_name or transport is required.")
            transport = DeviceManager(resource_name)
        self.resource_name = resource_name or getattr(transport, "resource_name", repr(transport))
        if self.resource_name in Keysight_33500B._claimed:
            raise TransportError(f"{self.resource_name} is already owned by another session.")

        self.transport = transport
        self.sampling_rate = sampling_rate
        self.reset_on_connect = reset_on_connect
        self.voltage_threshold = commands.VOLTAGE_SAFETY_THRESHOLD
        self.diagnostics = DiagnosticsLog(log_path)
        self.errors = ErrorMonitor(transport, self.diagnostics)
        self.buffers = BufferNegotiator(transport)
        self.channels = {ch: Channel(ch) for ch in CHANNELS}
        self.identity = None
        self._closed = False
        # claimed last so a failure above leaves the resource free
        Keysight_33500B._claimed.add(self.resource_name)

    def __copy__(self):
        raise TypeError(f"{type(self).__name__} owns its instrument and cannot be copied")

    def __deepcopy__(self, memo):
        self.__copy__()

    def __reduce__(self):
        self.__copy__()

    def __enter__(self):
        try:
            self.connect()
        except BaseException:
            self.close()
            raise
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        try:
            if getattr(self.transport, "is_open", True):
                self._send(commands.output_block(CHANNELS, False))
        finally:
            self.close()

    # ==========================================
    # CONNECTION
    # ==========================================

    def connect(self):
        """Open the link, record the instrument identity and reset it."""
        if self._closed:
            raise TransportError(f"Session for {self.resource_name} is closed; create a new one.")
        self.transport.connect()
        self.diagnostics.write("Successful connection")
        self.identity = self.identify()
        self.diagnostics.write(self.identity)
        ColorPrinter.success(f"Connected to {self.resource_name}: {self.identity}")
        if self.reset_on_connect:
            self.reset()

    def close(self):
        """Close the link and the diagnostics log; the session cannot be reused."""
        if self._closed:
            return
        self._closed = True
        try:
            self.transport.disconnect()
        finally:
            self.diagnostics.close()
            Keysight_33500B._claimed.discard(self.resource_name)
            ColorPrinter.info(f"Disconnected from {self.resource_name}")

    def identify(self):
        return self._query(commands.IDN_QUERY)

    # ==========================================
    # INTERNAL HELPERS
    # ==========================================

    def _send(self, block):
        text = block.text
        self.transport.write(text)
        first = block.lines[0] if block.lines else ""
        if len(first) > 80:
            first = first[:77] + "..."
        extra = f" (+{len(block) - 1} lines, {len(text)} bytes)" if len(block) > 1 else ""
        ColorPrinter.command(f"Sent: {first}{extra}")

    def _query(self, text):
        self.transport.write(text)
        return self.transport.read_line()

    def _finish(self, label):
        had_error = self.errors.check_errors()
        if had_error:
            ColorPrinter.error(f"{label}: instrument reported errors, check the diagnostics log")
        return had_error

    def _run(self, label, block):
        self._send(block)
        return self._finish(label)

    # ==========================================
    # OUTPUT CONTROL
    # ==========================================

    def check_errors(self):
        """Drain the instrument error queue; True if anything was pending."""
        return self._finish("check_errors")

    def go(self, config=None, **options):
        """Enable the selected outputs (default: both channels)."""
        cfg = resolve(ChannelSelection, config, **options)
        had_error = self._run("go", commands.output_block(cfg.channels, True))
        for ch in cfg.channels:
            self.channels[ch].enabled = True
        return had_error

    def stop(self, config=None, **options):
        """Disable the selected outputs, then send a software trigger.

        ``go`` does not trigger; ``stop`` always does.
        """
        cfg = resolve(ChannelSelection, config, **options)
        block = commands.output_block(cfg.channels, False) + commands.software_trigger_block()
        self._send(block)
        for ch in cfg.channels:
            self.channels[ch].enabled = False
        self._record_software_trigger()
        return self._finish("stop")

    def send_trigger(self):
        """Issue ``*TRG`` and leave channel 2 armed for bus triggering."""
        self._send(commands.software_trigger_block())
        self._record_software_trigger()
        return self._finish("send_trigger")

    def _record_software_trigger(self):
        for channel in self.channels.values():
            if channel.burst is not BurstState.IDLE and channel.trigger_source == "BUS":
                channel.burst = BurstState.FIRED
                channel.trigger_count += 1
        channel = self.channels[2]
        channel.trigger_source = "BUS"
        if channel.burst is BurstState.IDLE:
            channel.burst = BurstState.ARMED

    def reset(self):
        """Low amplitude sine on both channels, outputs off, volatile memory cleared."""
        block = commands.reset_block(CHANNELS)
        for ch in CHANNELS:
            block = block + commands.clear_memory_block(ch)
        had_error = self._run("reset", block)
        for channel in self.channels.values():
            channel.reset()
        return had_error

    def clear_memory(self, config=None, **options):
        """Clear the volatile arbitrary waveform memory of one channel (default 1)."""
        cfg = resolve(ClearMemoryConfig, config, **options)
        had_error = self._run("clear_memory", commands.clear_memory_block(cfg.channel))
        channel = self.channels[cfg.channel]
        channel.enabled = False
        channel.resident.clear()
        if channel.function is Function.ARBITRARY:
            channel.waveform = None
        return had_error

    # ==========================================
    # STIMULATION MODES
    # ==========================================

    def configure_pulse(self, config=None, **options):
        """Set a channel (default 2) to output pulses.

        Options:
            duty_cycle (float): Duty cycle in %.
            duration (float): Pulse width in seconds.
            repetition_frequency (float): Pulse repetition frequency in Hz.
            channel (int): 1 or 2. Default 2.
            amplitude (float): Amplitude in Vpp. Default 0.6.

        Two of duty_cycle, duration and repetition_frequency are required;
        the third is derived. The output is left off.
        """
        cfg = resolve(PulseConfig, config, **options)
        block = commands.pulse_block(cfg)
        had_error = self._run("configure_pulse", block)
        channel = self.channels[cfg.channel]
        channel.function = Function.PULSE
        channel.enabled = False
        channel.amplitude = cfg.amplitude
        return had_error

    def configure_modulation(self, config=None, **options):
        """Amplitude-modulate one channel with the other.

        Options:
            channel (int): The modulating channel. Default 2; the other
                channel becomes the carrier and output.
            depth (float|None): AM depth in %; instrument setting kept if None.
        """
        cfg = resolve(ModulationConfig, config, **options)
        had_error = self._run("configure_modulation", commands.modulation_block(cfg))
        self.channels[cfg.carrier].function = Function.MODULATED
        self.channels[cfg.channel].enabled = False
        return had_error

    def configure_trigger(self, config=None, **options):
        """Output one waveform cycle per trigger.

        Options:
            source (str): EXT (rear panel), BUS (software) or TIM (internal timer). Default EXT.
            channels (int|tuple): Default both.
            trig_timer (float): Timer period in seconds, used with TIM. Default 1.
        """
        cfg = resolve(TriggerConfig, config, **options)
        had_error = self._run("configure_trigger", commands.trigger_block(cfg))
        for ch in cfg.channels:
            self.channels[ch].burst = BurstState.ARMED
            self.channels[ch].trigger_source = cfg.source
            self.channels[ch].trigger_count = 0
        return had_error

    def change_voltage(self, channel, volts, confirm=None):
        """Set a channel amplitude, switching both outputs off first.

        Amplitudes above ``voltage_threshold`` are only applied when
        ``confirm`` is True or a callable ``confirm(channel, volts)``
        returns True. Otherwise nothing is sent and the result says
        confirmation is required.

        Returns:
            VoltageChangeResult
        """
        channel = validate_channel(channel)
        check = commands.check_voltage(volts, self.voltage_threshold)
        if check is VoltageCheck.CONFIRMATION_REQUIRED:
            approved = confirm(channel, volts) if callable(confirm) else bool(confirm)
            if not approved:
                ColorPrinter.warning(
                    f"CH{channel}: {volts} exceeds {self.voltage_threshold}; not applied without confirmation"
                )
                return VoltageChangeResult(VoltageChangeStatus.CONFIRMATION_REQUIRED)
        had_error = self._run("change_voltage", commands.voltage_block(channel, volts))
        for ch in CHANNELS:
            self.channels[ch].enabled = False
        self.channels[channel].amplitude = volts
        return VoltageChangeResult(VoltageChangeStatus.APPLIED, had_error)

    # ==========================================
    # ARBITRARY WAVEFORMS AND STATES
    # ==========================================

    def load_waveform(self, name, config=None, **options):
        """Load a stored waveform file into a channel's volatile memory and select it.

        Options:
            path (str): Folder on the instrument. Default 'USB:\\'.
            channel (int): Default 1.
            sample_rate (float): Samples per second. Default: session sampling rate.
        """
        if config is None and "sample_rate" not in options:
            options["sample_rate"] = self.sampling_rate
        cfg = resolve(LoadWaveformConfig, config, **options)
        had_error = self._run(f"load_waveform {name}", commands.load_waveform_block(name, cfg))
        channel = self.channels[cfg.channel]
        target = f"{cfg.path}{name}"
        channel.resident.add(target)
        channel.function = Function.ARBITRARY
        channel.waveform = target
        channel.amplitude = 0.01
        return had_error

    def load_state(self, name, config=None, **options):
        """Recall an instrument state file. Default folder 'USB:\\STATES\\'.

        The recalled settings are not read back, so ``channels`` keeps
        describing what this session last sent.
        """
        cfg = resolve(LoadStateConfig, config, **options)
        return self._run(f"load_state {name}", commands.load_state_block(name, cfg))

    def upload_waveform(self, samples, name, sampling_rate, config=None, **options):
        """Send samples as a new arbitrary waveform, apply it and store a copy.

        The samples are rescaled to the full DAC range, so only their shape
        matters; the output level is set by ``amplitude``.

        Options:
            channel (int): Default 1.
            path (str): Storage folder for the '<name>.barb' copy. Default 'USB:\\'.
            amplitude (float): Vpp applied with the waveform. Default 0.1.
        """
        cfg = resolve(UploadConfig, config, **options)
        waveform = Waveform.create(samples, name, sampling_rate)
        payload = encode(waveform.samples).to_text()
        block = commands.upload_block(waveform.name, payload, waveform.sample_rate, cfg)
        with self.buffers.widened(BufferDirection.OUTPUT, len(block.text) + UPLOAD_BUFFER_MARGIN):
            self._send(block)
        had_error = self._finish(f"upload_waveform {name}")
        channel = self.channels[cfg.channel]
        channel.resident.add(waveform.name)
        channel.function = Function.ARBITRARY
        channel.waveform = waveform.name
        channel.amplitude = cfg.amplitude
        return had_error

    # ==========================================
    # MEMORY AND CATALOG
    # ==========================================

    def check_memory(self, name):
        """True if ``name`` appears in the volatile memory catalog.

        This is a plain substring test on the catalog reply, so a name that
        is contained in another resident name also matches.
        """
        return name in self._query(commands.VOLATILE_CATALOG_QUERY)

    is_resident = check_memory

    @property
    def resident_waveforms(self):
        """Waveforms this session put in volatile memory, per the session's own bookkeeping."""
        return set().union(*(channel.resident for channel in self.channels.values()))

    def waveforms_available(self, folder):
        """Names of the stored waveforms (without '.barb') in ``folder``."""
        with self.buffers.widened(BufferDirection.INPUT, CATALOG_BUFFER_SIZE):
            response = self._query(commands.catalog_query(folder))
        names = parse_catalog(response)
        self._finish(f"waveforms_available {folder}")
        return names

    list_waveforms = waveforms_available

    def _attribute(self, query, label, name, config, options):
        cfg = resolve(AttributeQueryConfig, config, **options)
        target = f"{cfg.path}{name}"
        if not self.check_memory(target):
            ColorPrinter.warning(f"{target} not in volatile memory; load it before querying {label}")
            return AttributeResult(0.0, False)
        return AttributeResult(float(self._query(query(target))), True)

    def crest_factor(self, name, config=None, **options):
        """Crest factor of a loaded waveform. Option: path (default 'USB:\\')."""
        return self._attribute(commands.crest_factor_query, "crest factor", name, config, options)

    def peak_to_peak(self, name, config=None, **options):
        """Peak-to-peak value of a loaded waveform. Option: path (default 'USB:\\')."""
        return self._attribute(commands.peak_to_peak_query, "peak-to-peak", name, config, options)
