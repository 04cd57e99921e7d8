"""Builders for SCSI command descriptor blocks (CDBs)."""

from __future__ import annotations


def _be(value: int, size: int) -> bytes:
    """Big-endian encoding of ``value`` truncated to ``size`` bytes."""
    return (value & ((1 << (8 * size)) - 1)).to_bytes(size, "big")


def _byte(value: int) -> bytes:
    return bytes([value & 0xFF])


def tur() -> bytes:
    """TEST UNIT READY."""
    return bytes(6)


def inquiry(evpd: bool, page_code: int, alloc_len: int) -> bytes:
    """INQUIRY, optionally for a vital product data page."""
    return (
        b"\x12"
        + (b"\x01" if evpd else b"\x00")
        + _byte(page_code)
        + _be(alloc_len, 2)
        + b"\x00"
    )


def read_capacity_10() -> bytes:
    """READ CAPACITY (10)."""
    return b"\x25" + bytes(9)


def read_capacity_16(alloc_len: int) -> bytes:
    """READ CAPACITY (16) via SERVICE ACTION IN."""
    return b"\x9e\x10" + bytes(8) + _be(alloc_len, 4) + bytes(2)


def _rw_10(opcode: int, fua: bool, lba: int, transfer_length_blocks: int) -> bytes:
    return (
        bytes([opcode, int(bool(fua)) << 3])
        + _be(lba, 4)
        + b"\x00"
        + _be(transfer_length_blocks, 2)
        + b"\x00"
    )


def read_10(fua: bool, lba: int, transfer_length_blocks: int) -> bytes:
    """READ (10)."""
    return _rw_10(0x28, fua, lba, transfer_length_blocks)


def write_10(fua: bool, lba: int, transfer_length_blocks: int) -> bytes:
    """WRITE (10)."""
    return _rw_10(0x2A, fua, lba, transfer_length_blocks)


def _rw_16(opcode: int, dpo: bool, fua: bool, fua_nv: bool, lba: int, transfer_length_blocks: int) -> bytes:
    flags = (int(bool(dpo)) << 4) | (int(bool(fua)) << 3) | (int(bool(fua_nv)) << 1)
    return bytes([opcode, flags]) + _be(lba, 8) + _be(transfer_length_blocks, 4) + bytes(2)


def read_16(fua: bool, fua_nv: bool, dpo: bool, lba: int, transfer_length_blocks: int) -> bytes:
    """READ (16)."""
    return _rw_16(0x88, dpo, fua, fua_nv, lba, transfer_length_blocks)


def write_16(dpo: bool, fua: bool, fua_nv: bool, lba: int, transfer_length_blocks: int) -> bytes:
    """WRITE (16)."""
    return _rw_16(0x8A, dpo, fua, fua_nv, lba, transfer_length_blocks)


def log_sense(page_code: int, subpage_code: int, alloc_len: int) -> bytes:
    """LOG SENSE for cumulative values of a page."""
    return (
        b"\x4d\x00"
        + _byte((1 << 6) | (page_code & 0x3F))
        + _byte(subpage_code)
        + bytes(3)
        + _be(alloc_len, 2)
        + b"\x00"
    )


def receive_diagnostics(page_code_valid: bool, page_code: int, alloc_len: int) -> bytes:
    """RECEIVE DIAGNOSTIC RESULTS."""
    return (
        b"\x1c"
        + (b"\x01" if page_code_valid else b"\x00")
        + _byte(page_code)
        + _be(alloc_len, 2)
        + b"\x00"
    )


def send_diagnostics(self_test: int, param_len: int) -> bytes:
    """SEND DIAGNOSTIC with the given self-test code."""
    return b"\x1d" + _byte(self_test << 5) + b"\x00" + _be(param_len, 2) + b"\x00"


def mode_sense_6(
    disable_block_descriptor: bool,
    page_control: int,
    page_code: int,
    subpage_code: int,
    alloc_len: int,
) -> bytes:
    """MODE SENSE (6)."""
    return (
        b"\x1a"
        + (b"\x08" if disable_block_descriptor else b"\x00")
        + _byte((page_control << 6) | page_code)
        + _byte(subpage_code)
        + _byte(alloc_len)
        + b"\x00"
    )


def mode_sense_10(
    long_lba_accepted: bool,
    disable_block_descriptor: bool,
    page_control: int,
    page_code: int,
    subpage_code: int,
    alloc_len: int,
) -> bytes:
    """MODE SENSE (10)."""
    flags = (0x10 if long_lba_accepted else 0) | (0x08 if disable_block_descriptor else 0)
    return (
        b"\x5a"
        + _byte(flags)
        + _byte((page_control << 6) | page_code)
        + _byte(subpage_code)
        + bytes(3)
        + _be(alloc_len, 2)
        + b"\x00"
    )


def _defect_flags(plist: bool, glist: bool, fmt: int) -> bytes:
    return _byte((0x10 if plist else 0) | (0x08 if glist else 0) | fmt)


def read_defect_data_10(plist: bool, glist: bool, fmt: int, alloc_len: int) -> bytes:
    """READ DEFECT DATA (10)."""
    return b"\x37\x00" + _defect_flags(plist, glist, fmt) + bytes(4) + _be(alloc_len, 2) + b"\x00"


def read_defect_data_12(plist: bool, glist: bool, fmt: int, alloc_len: int) -> bytes:
    """READ DEFECT DATA (12)."""
    return b"\xb7" + _defect_flags(plist, glist, fmt) + bytes(4) + _be(alloc_len, 4) + bytes(2)