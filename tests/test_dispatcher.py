from __future__ import annotations

import errno
import io

import pytest

from iiocmdsrv.core.dispatcher import Session, SessionEnd
from iiocmdsrv.core.protocol import HELP_TEXT


class FakeProvisioning:
    def __init__(self) -> None:
        self.calls: list[tuple[str, str | None]] = []

    def __call__(self, serial: str, date: str | None) -> None:
        self.calls.append((serial, date))


def _session(iio_tree, data: bytes, provisioning=None) -> tuple[Session, io.BytesIO]:
    out = io.BytesIO()
    session = Session.from_config(
        iio_tree.config,
        io.BytesIO(data),
        out,
        provisioning=provisioning or FakeProvisioning(),
    )
    return session, out


def _run(iio_tree, data: bytes, provisioning=None) -> bytes:
    session, out = _session(iio_tree, data, provisioning)
    assert session.run() == SessionEnd.END_OF_INPUT
    return out.getvalue()


def _status(code: int) -> bytes:
    return f"{code}\n\n\n".encode()


def test_version_and_help(iio_tree) -> None:
    assert _run(iio_tree, b"version\n") == b"0.3\n"
    assert _run(iio_tree, b"help\n") == (HELP_TEXT + "\n").encode()


def test_blank_lines_are_ignored(iio_tree) -> None:
    assert _run(iio_tree, b"\n   \nversion\n\n") == b"0.3\n"


def test_unknown_command_ends_session(iio_tree) -> None:
    session, out = _session(iio_tree, b"frobnicate x y\nversion\nhelp\n")
    assert session.run() == SessionEnd.UNKNOWN_COMMAND
    assert out.getvalue() == b""


def test_keywords_match_exactly(iio_tree) -> None:
    session, out = _session(iio_tree, b"readx adc raw\nversion\n")
    assert session.run() == SessionEnd.UNKNOWN_COMMAND
    assert out.getvalue() == b""


def test_sample_with_non_numeric_count_is_einval(iio_tree) -> None:
    assert _run(iio_tree, b"sample abc\n") == _status(-errno.EINVAL)


def test_non_numeric_count_for_known_device(iio_tree) -> None:
    iio_tree.add_device(0, "adc")
    assert _run(iio_tree, b"sample adc abc 2\nreadbuf adc 4 -1\n") == _status(-errno.EINVAL) * 2


def test_show_without_devices(iio_tree) -> None:
    assert _run(iio_tree, b"show\n") == b"-1\n"


def test_show_lists_devices(iio_tree) -> None:
    iio_tree.add_device(0, "ad9361-phy")
    iio_tree.add_device(1, "cf-ad9361-lpc")
    assert _run(iio_tree, b"show\n") == b"0\nad9361-phy cf-ad9361-lpc \n"


def test_show_device_path_lists_files(iio_tree) -> None:
    iio_tree.add_device(0, "adc", {"in_voltage0_raw": "1\n"})
    assert _run(iio_tree, b"show adc .\n") == b"0\nin_voltage0_raw name \n"
    assert _run(iio_tree, b"show adc buffer\n") == b"0\nenable length \n"
    assert _run(iio_tree, b"dbfsshow adc .\n") == b"0\ndirect_reg_access \n"


def test_show_empty_directory(iio_tree) -> None:
    device_dir = iio_tree.add_device(0, "adc")
    (device_dir / "scan_elements").mkdir()
    assert _run(iio_tree, b"show adc scan_elements\n") == b"-1\n"


def test_missing_device_name_is_einval(iio_tree) -> None:
    assert _run(iio_tree, b"read\nwrite\nbufwrite\n") == _status(-errno.EINVAL) * 3


def test_unknown_device_is_enodev(iio_tree) -> None:
    assert _run(iio_tree, b"read ghost raw\n") == _status(-errno.ENODEV)


def test_read_attribute(iio_tree) -> None:
    iio_tree.add_device(0, "adc", {"in_voltage0_raw": "123\n", "empty": ""})
    out = _run(iio_tree, b"read adc in_voltage0_raw\nread adc empty\n")
    assert out == b"0\n123\n0\n\n"


def test_read_missing_attribute_reports_errno(iio_tree) -> None:
    iio_tree.add_device(0, "adc")
    assert _run(iio_tree, b"read adc nope\n") == _status(-errno.ENOENT)


def test_write_attribute(iio_tree) -> None:
    device_dir = iio_tree.add_device(0, "adc", {"sampling_frequency": "1000\n"})
    out = _run(iio_tree, b"write adc sampling_frequency 2000\n")
    assert out == _status(0)
    assert (device_dir / "sampling_frequency").read_text() == "2000\n"


def test_write_without_value_is_einval(iio_tree) -> None:
    device_dir = iio_tree.add_device(0, "adc", {"sampling_frequency": "1000\n"})
    assert _run(iio_tree, b"write adc sampling_frequency\n") == _status(-errno.EINVAL)
    assert (device_dir / "sampling_frequency").read_text() == "1000\n"


def test_register_access(iio_tree) -> None:
    iio_tree.add_device(0, "adc")
    reg = iio_tree.debug_dir(0) / "direct_reg_access"

    assert _run(iio_tree, b"regwrite adc 0x80 0x1f\n") == _status(0)
    assert reg.read_text() == "0x80 0x1f\n"

    assert _run(iio_tree, b"regread adc 0x37\n") == b"0\n0x37\n"
    assert _run(iio_tree, b"regwrite adc 0x80\n") == _status(-errno.EINVAL)


def test_debugfs_attributes(iio_tree) -> None:
    iio_tree.add_device(0, "adc")
    (iio_tree.debug_dir(0) / "loopback").write_text("0\n")

    assert _run(iio_tree, b"dbfswrite adc loopback 1\ndbfsread adc loopback\n") == _status(0) + b"0\n1\n"


def test_bufwrite_then_readbuf_round_trip(iio_tree) -> None:
    device_dir = iio_tree.add_device(0, "adc")
    payload = bytes(range(16))

    out = _run(iio_tree, b"bufwrite adc 16\n" + payload + b"readbuf adc 16 1\n")

    assert out == _status(16) + _status(16) + payload
    assert (device_dir / "buffer" / "length").read_text() == "16\n"


def test_bufread_alias(iio_tree) -> None:
    iio_tree.add_device(0, "adc")
    iio_tree.endpoint(0).write_bytes(b"abcd")
    assert _run(iio_tree, b"bufread adc 2 2\n") == _status(4) + b"abcd"


def test_sample_leaves_buffer_disabled(iio_tree) -> None:
    device_dir = iio_tree.add_device(0, "adc")
    (device_dir / "buffer" / "enable").write_text("1\n")
    iio_tree.endpoint(0).write_bytes(b"\x10\x00\x20\x00\x30\x00\x40\x00")

    out = _run(iio_tree, b"sample adc 4 2\n")

    assert out == _status(8) + b"\x10\x00\x20\x00\x30\x00\x40\x00"
    assert (device_dir / "buffer" / "length").read_text() == "8\n"
    assert (device_dir / "buffer" / "enable").read_text() == "0\n"


def test_transfer_bound_is_einval(iio_tree) -> None:
    iio_tree.add_device(0, "adc")
    out = _run(iio_tree, b"sample adc 4096 2\nbufwrite adc 5000\n")
    assert out == _status(-errno.EINVAL) * 2


def test_oversized_bufwrite_payload_is_not_run_as_commands(iio_tree) -> None:
    device_dir = iio_tree.add_device(0, "adc", {"gain": "1\n"})
    payload = b"write adc gain 7\n".ljust(5000, b"x")

    out = _run(iio_tree, b"bufwrite adc 5000\n" + payload + b"version\n")

    assert out == _status(-errno.EINVAL) + b"0.3\n"
    assert (device_dir / "gain").read_text() == "1\n"
    assert (device_dir / "buffer" / "length").read_text() == "0\n"


def test_nul_byte_in_arguments_is_einval(iio_tree) -> None:
    iio_tree.add_device(0, "adc", {"raw": "5\n"})

    out = _run(iio_tree, b"read adc ra\x00w\nshow adc a\x00b\nversion\nread adc raw\n")

    assert out == _status(-errno.EINVAL) * 2 + b"0.3\n" + b"0\n5\n"


def test_device_lookup_is_cached(iio_tree) -> None:
    iio_tree.add_device(0, "adc", {"raw": "1\n"})
    session, _ = _session(iio_tree, b"")
    calls: list[str] = []
    names = session.resolver._names
    real_slot_for = names.slot_for

    def counting_slot_for(name: str) -> int:
        calls.append(name)
        return real_slot_for(name)

    names.slot_for = counting_slot_for
    for _ in range(3):
        session.handle_line("read adc raw\n")
    assert calls == ["adc"]


def test_errors_do_not_end_session(iio_tree) -> None:
    iio_tree.add_device(0, "adc")
    out = _run(iio_tree, b"read ghost raw\nwrite adc\nversion\n")
    assert out == _status(-errno.ENODEV) + _status(-errno.EINVAL) + b"0.3\n"


def test_fru_eeprom_invokes_hook_and_ends_session(iio_tree) -> None:
    hook = FakeProvisioning()
    session, out = _session(iio_tree, b"fru_eeprom SN123 2024-01-01\nversion\n", hook)

    assert session.run() == SessionEnd.PROVISIONED
    assert hook.calls == [("SN123", "2024-01-01")]
    assert out.getvalue() == b""


@pytest.mark.parametrize("line", [b"fru_eeprom SN123\n", b"fru_eeprom ../etc\n", b"fru_eeprom\n"])
def test_fru_eeprom_skips_hook(iio_tree, line: bytes) -> None:
    markers = iio_tree.root / "markers"
    markers.mkdir()
    (markers / "SN123").write_text("")
    hook = FakeProvisioning()

    session, _ = _session(iio_tree, line, hook)

    assert session.run() == SessionEnd.PROVISIONED
    assert hook.calls == []
