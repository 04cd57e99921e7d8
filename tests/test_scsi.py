import pytest

from diskscan.scsi import (
    InformationalExceptions,
    Inquiry,
    ReadCapacity10,
    parse_inquiry,
    parse_read_capacity_10,
    parse_read_capacity_16,
    read_defect_data_format_to_str,
    log_sense_informational_exceptions,
)


def inquiry_buf(length, additional, fmt=2, device_type=0):
    buf = bytearray(length)
    buf[0] = device_type
    buf[3] = fmt
    buf[4] = additional
    text = b"ATA     " + b"EXAMPLE DISK 100" + b"AB12" + b"SN000001"
    buf[8:8 + len(text)] = text[: length - 8]
    return bytes(buf)


def test_inquiry_full():
    info = parse_inquiry(inquiry_buf(44, 40))
    assert info == Inquiry(
        device_type=0,
        vendor="ATA     ",
        model="EXAMPLE DISK 100",
        revision="AB12",
        serial="SN000001",
    )


def test_inquiry_no_serial_without_format_2():
    info = parse_inquiry(inquiry_buf(44, 40, fmt=1))
    assert info.revision == "AB12"
    assert info.serial == ""


def test_inquiry_partial_valid_length():
    info = parse_inquiry(inquiry_buf(36, 31))
    assert info.vendor == "ATA     "
    assert info.model == "EXAMPLE DISK 100"
    assert info.revision == ""


def test_inquiry_device_type_mask():
    assert parse_inquiry(inquiry_buf(36, 32, device_type=0xE5)).device_type == 0x05


def test_inquiry_nul_terminated_vendor():
    buf = bytearray(inquiry_buf(36, 32))
    buf[8:16] = b"ATA\x00\x00\x00\x00\x00"
    assert parse_inquiry(buf).vendor == "ATA"


def test_inquiry_too_short():
    with pytest.raises(ValueError):
        parse_inquiry(bytes(31))


def test_read_capacity_10():
    result = parse_read_capacity_10(b"\x00\x00\x10\x00\x00\x00\x02\x00")
    assert result == ReadCapacity10(max_lba=0x1000, block_size=512)


def test_read_capacity_10_too_short():
    with pytest.raises(ValueError):
        parse_read_capacity_10(bytes(7))


def test_read_capacity_16():
    buf = bytearray(32)
    buf[0:8] = (0x100000000).to_bytes(8, "big")
    buf[8:12] = (4096).to_bytes(4, "big")
    buf[12] = 0x05
    buf[13] = 0x31
    buf[14] = 0xC1
    buf[15] = 0x02
    result = parse_read_capacity_16(buf)
    assert result.max_lba == 0x100000000
    assert result.block_size == 4096
    assert result.prot_enable is True
    assert result.p_type == 2
    assert result.p_i_exponent == 3
    assert result.logical_blocks_per_physical_block_exponent == 1
    assert result.thin_provisioning_enabled is True
    assert result.thin_provisioning_zero is True
    assert result.lowest_aligned_lba == 258


def test_read_capacity_16_flags_clear():
    buf = bytearray(16)
    buf[8:12] = (512).to_bytes(4, "big")
    result = parse_read_capacity_16(buf)
    assert result.prot_enable is False
    assert result.thin_provisioning_enabled is False
    assert result.lowest_aligned_lba == 0


def test_read_capacity_16_too_short():
    with pytest.raises(ValueError):
        parse_read_capacity_16(bytes(15))


@pytest.mark.parametrize(
    "fmt, name",
    [(0, "Short"), (1, "Reserved (1)"), (3, "Long"), (4, "Index"), (5, "Physical"), (6, "Vendor"), (7, "Reserved (7)"), (8, "Unknown")],
)
def test_defect_format_names(fmt, name):
    assert read_defect_data_format_to_str(fmt) == name


def log_page(code, params, subpage=None):
    body = b"".join(params)
    first = code | (0x40 if subpage is not None else 0)
    return bytes([first, subpage or 0]) + len(body).to_bytes(2, "big") + body


def param(code, data):
    return code.to_bytes(2, "big") + b"\x03" + bytes([len(data)]) + data


def test_informational_exceptions():
    page = log_page(0x2F, [param(0, b"\x5d\x10\x28\x00")])
    assert log_sense_informational_exceptions(page) == InformationalExceptions(
        asc=0x5D, ascq=0x10, temperature=40
    )


def test_informational_exceptions_after_other_param():
    page = log_page(0x2F, [param(1, b"\x01\x02"), param(0, b"\x00\x00\x23")])
    result = log_sense_informational_exceptions(page)
    assert result.temperature == 0x23


def test_informational_exceptions_wrong_page():
    assert log_sense_informational_exceptions(log_page(0x0D, [param(0, b"\x00\x00\x23")])) is None


def test_informational_exceptions_nonzero_subpage():
    page = log_page(0x2F, [param(0, b"\x00\x00\x23")], subpage=1)
    assert log_sense_informational_exceptions(page) is None


def test_informational_exceptions_missing_param():
    assert log_sense_informational_exceptions(log_page(0x2F, [param(1, b"\x00\x00\x23")])) is None


def test_informational_exceptions_short_page():
    assert log_sense_informational_exceptions(b"\x2f\x00") is None