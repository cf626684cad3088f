import numpy as np
import pytest

from stim_fgen import ColorPrinter
from stim_fgen.repl import RESOURCE_ENV, FunctionGeneratorRepl, main, parse_argv, parse_value, split_options


@pytest.fixture
def repl(fgen):
    return FunctionGeneratorRepl(fgen, confirm=lambda channel, volts: False)


def test_parse_value():
    assert parse_value("10") == 10
    assert parse_value("0.5") == 0.5
    assert parse_value("(1, 2)") == (1, 2)
    assert parse_value("BUS") == "BUS"
    assert parse_value("USB:\\") == "USB:\\"


def test_split_options():
    positional, options = split_options(["PULSE1", "channel=2", "path=USB:\\STIM\\"])
    assert positional == ["PULSE1"]
    assert options == {"channel": 2, "path": "USB:\\STIM\\"}


def test_pulse_command(repl, mock_fgen):
    repl.onecmd("pulse duty_cycle=10 repetition_frequency=100")
    assert mock_fgen.lines[0] == "SOUR2:APPLY:PULSE 100hz"


def test_bad_option_is_reported_and_nothing_sent(repl, mock_fgen, capsys):
    repl.onecmd("pulse duty=10 duration=1")
    assert "Configuration error" in capsys.readouterr().out
    assert mock_fgen.writes == []


def test_chained_commands(repl, mock_fgen):
    repl.onecmd("go 1; stop ch1")
    assert mock_fgen.writes[0] == "OUTP1 ON"
    assert mock_fgen.lines[2].startswith("OUTP1 OFF")


def test_volt_declined(repl, mock_fgen, capsys):
    ColorPrinter.quiet = False
    repl.onecmd("volt 1 2.0")
    assert mock_fgen.writes == []
    assert "Voltage unchanged" in capsys.readouterr().out


def test_volt_confirmed(fgen, mock_fgen):
    FunctionGeneratorRepl(fgen, confirm=lambda channel, volts: True).onecmd("volt 2 1.2")
    assert "SOUR2:VOLT +1.2" in mock_fgen.lines


def test_load_and_mem(repl, mock_fgen, capsys):
    repl.onecmd("load PULSE1 channel=2")
    assert 'MMEM:LOAD:DATA2 "USB:\\PULSE1"' in mock_fgen.lines
    capsys.readouterr()
    repl.onecmd("mem USB:\\PULSE1")
    assert capsys.readouterr().out.strip() == "yes"


def test_upload_from_file(repl, mock_fgen, tmp_path):
    path = tmp_path / "burst.csv"
    np.savetxt(path, np.sin(np.linspace(0, 2 * np.pi, 50))[None, :], delimiter=",")
    repl.onecmd(f"upload {path} BURST1 1e6 channel=2")
    assert mock_fgen.lines[0].startswith("SOUR2:DATA:ARB:DAC BURST1,")


def test_errors_command(repl, mock_fgen, capsys):
    mock_fgen.push_error(-113, "Undefined header")
    repl.onecmd("errors")
    assert '-113,"Undefined header"' in capsys.readouterr().out


def test_status(repl, capsys):
    repl.onecmd("go 2")
    repl.onecmd("status")
    out = capsys.readouterr().out
    assert "CH2: ON" in out
    assert "CH1: OFF" in out


def test_parse_argv(monkeypatch):
    monkeypatch.setenv(RESOURCE_ENV, "USB0::INSTR")
    assert parse_argv([]) == {"resource": "USB0::INSTR", "log": None, "mock": False}
    assert parse_argv(["--mock", "--log=run.log"])["mock"] is True
    with pytest.raises(SystemExit):
        parse_argv(["--bogus"])


def test_main_without_instrument(monkeypatch):
    monkeypatch.delenv(RESOURCE_ENV, raising=False)
    assert main([]) == 1


def test_main_mock_session(monkeypatch):
    monkeypatch.setattr(FunctionGeneratorRepl, "cmdloop", lambda self: self.onecmd("go"))
    assert main(["--mock"]) == 0


def test_clear_accepts_ch_prefix(repl, mock_fgen):
    repl.onecmd("clear ch2")
    assert "SOUR2:DATA:VOL:CLE" in mock_fgen.lines
    assert "SOUR1:DATA:VOL:CLE" not in mock_fgen.lines


def test_clear_rejects_unknown_channel(repl, mock_fgen, capsys):
    repl.onecmd("clear two")
    assert mock_fgen.writes == []
    assert "Usage: clear" in capsys.readouterr().out
