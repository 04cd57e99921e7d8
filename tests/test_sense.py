import pytest

from diskscan.sense import AtaStatus, SenseError, SenseKey, parse_sense


def fixed_sense(key, asc=0, ascq=0, sks=b"\x00\x00\x00", length=18):
    buf = bytearray(length)
    buf[0] = 0x70
    buf[2] = key
    buf[7] = length - 8
    buf[12] = asc
    buf[13] = ascq
    buf[15:18] = sks
    return buf


def descriptor_sense(key, asc, ascq, descriptors):
    body = b"".join(descriptors)
    return bytes([0x72, key, asc, ascq, 0, 0, 0, len(body)]) + body


def test_fixed_medium_error():
    info = parse_sense(fixed_sense(0x03, 0x11, 0x00))
    assert info.is_fixed
    assert info.is_current
    assert info.sense_key == SenseKey.MEDIUM_ERROR
    assert info.asc == 0x11
    assert info.ascq == 0x00
    assert info.cmd_specific_valid
    assert info.fru_code_valid
    assert not info.information_valid
    assert not info.ata_status_valid


def test_fixed_information_and_cmd_specific():
    buf = fixed_sense(0x03)
    buf[0] = 0xF0
    buf[3:7] = b"\x00\x00\x12\x34"
    buf[8:12] = b"\xde\xad\xbe\xef"
    buf[14] = 0x07
    info = parse_sense(buf)
    assert info.information_valid
    assert info.information == 0x1234
    assert info.cmd_specific == 0xDEADBEEF
    assert info.fru_code == 7


def test_fixed_deferred():
    buf = fixed_sense(0x01)
    buf[0] = 0x71
    info = parse_sense(buf)
    assert info.is_fixed
    assert not info.is_current
    assert info.sense_key == SenseKey.RECOVERED_ERROR


def test_fixed_illegal_request_key_specific():
    info = parse_sense(fixed_sense(0x05, 0x24, 0x00, sks=b"\xcb\x00\x05"))
    assert info.sense_key_specific_valid
    assert info.command_error
    assert info.bit_pointer_valid
    assert info.bit_pointer == 3
    assert info.field_pointer == 5


def test_fixed_not_ready_progress():
    info = parse_sense(fixed_sense(0x02, 0x04, 0x04, sks=b"\x80\x80\x00"))
    assert info.sense_key_specific_valid
    assert info.progress == 0.5


def test_fixed_retry_count():
    info = parse_sense(fixed_sense(0x04, sks=b"\x80\x01\x02"))
    assert info.actual_retry_count == 0x0102


def test_fixed_unit_attention_overflow():
    info = parse_sense(fixed_sense(0x06, sks=b"\x81\x00\x00"))
    assert info.sense_key_specific_valid
    assert info.overflow


def test_key_specific_unsupported_key_is_invalid():
    info = parse_sense(fixed_sense(0x07, sks=b"\x80\x00\x01"))
    assert not info.sense_key_specific_valid


def test_fixed_incorrect_length_indicator():
    info = parse_sense(fixed_sense(0x20 | 0x03))
    assert info.incorrect_len_indicator
    assert info.sense_key == SenseKey.MEDIUM_ERROR


def test_fixed_vendor_unique():
    buf = fixed_sense(0x03, length=22)
    buf[20] = 0xAB
    buf[21] = 0xCD
    assert parse_sense(buf).vendor_unique_error == 0xABCD


def test_fixed_too_short():
    with pytest.raises(SenseError):
        parse_sense(fixed_sense(0x03)[:17])


def test_invalid_response_code():
    with pytest.raises(SenseError):
        parse_sense(bytes(18))


def test_empty_sense():
    with pytest.raises(SenseError):
        parse_sense(b"")


def test_descriptor_too_short():
    with pytest.raises(SenseError):
        parse_sense(b"\x72\x00\x00\x00")


def test_descriptor_ata_status_normal():
    desc = bytearray(14)
    desc[0] = 0x09
    desc[1] = 0x0C
    desc[3] = 0x00
    desc[4] = 0x00
    desc[7] = 0x01
    desc[9] = 0x4F
    desc[11] = 0xC2
    desc[12] = 0x40
    desc[13] = 0x50
    info = parse_sense(descriptor_sense(0x01, 0x00, 0x1D, [bytes(desc)]))
    assert not info.is_fixed
    assert info.is_current
    assert info.ascq == 0x1D
    assert info.ata_status == AtaStatus(
        extend=False, error=0, sector_count=0, lba=0xC24F01, device=0x40, status=0x50
    )


def test_descriptor_ata_status_extended():
    desc = bytes([0x09, 0x0C, 0x01, 0x04, 0x01, 0x02, 0x22, 0x11, 0x44, 0x33, 0x66, 0x55, 0xE0, 0x51])
    info = parse_sense(descriptor_sense(0x04, 0x00, 0x00, [desc]))
    status = info.ata_status
    assert status.extend
    assert status.error == 0x04
    assert status.sector_count == 0x0102
    assert status.lba == 0x665544332211
    assert status.device == 0xE0
    assert status.status == 0x51


def test_descriptor_other_descriptors():
    information = b"\x00\x0a\x80\x00" + (0x1122334455667788).to_bytes(8, "big")
    cmd_specific = b"\x01\x0a\x00\x00" + (0x42).to_bytes(8, "big")
    fru = b"\x03\x02\x00\x05"
    block = b"\x05\x02\x00\x20"
    vendor = b"\x80\x02\x12\x34"
    info = parse_sense(descriptor_sense(0x03, 0x11, 0x04, [information, cmd_specific, fru, block, vendor]))
    assert info.information_valid
    assert info.information == 0x1122334455667788
    assert info.cmd_specific_valid
    assert info.cmd_specific == 0x42
    assert info.fru_code_valid
    assert info.fru_code == 5
    assert info.incorrect_len_indicator
    assert info.vendor_unique_error == 0x1234


def test_descriptor_truncated_by_additional_length():
    desc = b"\x03\x02\x00\x05"
    buf = bytearray(descriptor_sense(0x03, 0, 0, [desc]))
    buf[7] = 0
    info = parse_sense(buf)
    assert not info.fru_code_valid


def test_descriptor_overlong_descriptor_ignored():
    buf = bytes([0x72, 0x03, 0, 0, 0, 0, 0, 4, 0x09, 0x0C, 0, 0])
    info = parse_sense(buf)
    assert info.ata_status is None
    assert info.sense_key == SenseKey.MEDIUM_ERROR


def test_descriptor_deferred():
    info = parse_sense(bytes([0x73, 0x02, 0x04, 0x00, 0, 0, 0, 0]))
    assert not info.is_fixed
    assert not info.is_current
    assert info.sense_key == SenseKey.NOT_READY
    assert info.asc == 0x04