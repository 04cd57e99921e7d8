"""Parsing of SCSI sense data in fixed and descriptor formats."""

from __future__ import annotations

import enum
from dataclasses import dataclass


class SenseError(ValueError):
    """Raised when a sense buffer cannot be parsed."""


class SenseKey(enum.IntEnum):
    """SCSI sense keys."""

    NO_SENSE = 0x0
    RECOVERED_ERROR = 0x1
    NOT_READY = 0x2
    MEDIUM_ERROR = 0x3
    HARDWARE_ERROR = 0x4
    ILLEGAL_REQUEST = 0x5
    UNIT_ATTENTION = 0x6
    DATA_PROTECT = 0x7
    BLANK_CHECK = 0x8
    VENDOR_SPECIFIC = 0x9
    COPY_ABORTED = 0xA
    ABORTED_COMMAND = 0xB
    OBSOLETE_C = 0xC
    VOLUME_OVERFLOW = 0xD
    MISCOMPARE = 0xE
    COMPLETED = 0xF


@dataclass(frozen=True)
class AtaStatus:
    """ATA task file registers returned through SCSI sense data."""

    extend: bool = False
    error: int = 0
    sector_count: int = 0
    lba: int = 0
    device: int = 0
    status: int = 0


@dataclass
class SenseInfo:
    """Decoded sense data."""

    is_fixed: bool = False
    is_current: bool = False
    sense_key: SenseKey = SenseKey.NO_SENSE
    asc: int = 0
    ascq: int = 0
    information_valid: bool = False
    information: int = 0
    cmd_specific_valid: bool = False
    cmd_specific: int = 0
    fru_code_valid: bool = False
    fru_code: int = 0
    incorrect_len_indicator: bool = False
    vendor_unique_error: int = 0
    sense_key_specific_valid: bool = False
    # Sense key specific fields; which ones apply depends on the sense key.
    command_error: bool = False
    bit_pointer_valid: bool = False
    bit_pointer: int = 0
    field_pointer: int = 0
    actual_retry_count: int = 0
    progress: float = 0.0
    segment_descriptor: bool = False
    overflow: bool = False
    ata_status: AtaStatus | None = None

    @property
    def ata_status_valid(self) -> bool:
        return self.ata_status is not None


def _be(buf: bytes, start: int, size: int) -> int:
    return int.from_bytes(buf[start:start + size], "big")


def _parse_key_specific(sks: bytes, info: SenseInfo) -> None:
    info.sense_key_specific_valid = bool(sks[0] & 0x80)
    if not info.sense_key_specific_valid:
        return
    value = _be(sks, 0, 3) & 0x007FFFFF
    key = info.sense_key
    if key == SenseKey.ILLEGAL_REQUEST:
        info.command_error = bool(value & 0x400000)
        info.bit_pointer_valid = bool(value & 0x080000)
        info.bit_pointer = (value & 0x070000) >> 16
        info.field_pointer = value & 0xFFFF
    elif key in (SenseKey.HARDWARE_ERROR, SenseKey.MEDIUM_ERROR, SenseKey.RECOVERED_ERROR):
        info.actual_retry_count = value & 0xFFFF
    elif key in (SenseKey.NOT_READY, SenseKey.NO_SENSE):
        info.progress = (value & 0xFFFF) / 65536.0
    elif key == SenseKey.COPY_ABORTED:
        info.segment_descriptor = bool(value & 0x200000)
        info.bit_pointer_valid = bool(value & 0x080000)
        info.bit_pointer = (value & 0x070000) >> 16
        info.field_pointer = value & 0xFFFF
    elif key == SenseKey.UNIT_ATTENTION:
        info.overflow = bool(value & 0x010000)
    else:
        info.sense_key_specific_valid = False


def _parse_fixed(sense: bytes, info: SenseInfo) -> None:
    if len(sense) < 18:
        raise SenseError(f"fixed format sense needs 18 bytes, got {len(sense)}")
    info.information_valid = bool(sense[0] & 0x80)
    if info.information_valid:
        info.information = _be(sense, 3, 4)
    info.incorrect_len_indicator = bool(sense[2] & 0x20)
    info.sense_key = SenseKey(sense[2] & 0xF)
    info.asc = sense[12]
    info.ascq = sense[13]
    info.cmd_specific_valid = True
    info.cmd_specific = _be(sense, 8, 4)
    info.fru_code_valid = True
    info.fru_code = sense[14]
    _parse_key_specific(sense[15:18], info)
    if len(sense) >= 22:
        info.vendor_unique_error = _be(sense, 20, 2)


def _parse_ata_descriptor(desc: bytes) -> AtaStatus:
    extend = bool(desc[2] & 1)
    if extend:
        sector_count = (desc[4] << 8) | desc[5]
        lba = (
            desc[7]
            | desc[6] << 8
            | desc[9] << 16
            | desc[8] << 24
            | desc[11] << 32
            | desc[10] << 40
        )
    else:
        sector_count = desc[4]
        lba = desc[7] | desc[9] << 8 | desc[11] << 16
    return AtaStatus(
        extend=extend,
        error=desc[3],
        sector_count=sector_count,
        lba=lba,
        device=desc[12],
        status=desc[13],
    )


def _parse_descriptor(sense: bytes, info: SenseInfo) -> None:
    if len(sense) < 8:
        raise SenseError(f"descriptor format sense needs 8 bytes, got {len(sense)}")
    info.sense_key = SenseKey(sense[1] & 0xF)
    info.asc = sense[2]
    info.ascq = sense[3]

    end = min(len(sense), sense[7] + 8)
    idx = 8
    while idx + 1 < end:
        desc_type = sense[idx]
        desc_len = sense[idx + 1]
        if idx + desc_len + 2 > end:
            break
        desc = sense[idx:idx + desc_len + 2]

        if desc_type == 0x00 and desc_len == 0x0A:
            info.information_valid = bool(desc[2] & 0x80)
            info.information = _be(desc, 4, 8)
        elif desc_type == 0x01 and desc_len == 0x0A:
            info.cmd_specific_valid = True
            info.cmd_specific = _be(desc, 4, 8)
        elif desc_type == 0x02 and desc_len == 0x06:
            # The key specific bytes are taken from the sense header position.
            _parse_key_specific(sense[4:7], info)
        elif desc_type == 0x03 and desc_len == 0x02:
            info.fru_code_valid = True
            info.fru_code = desc[3]
        elif desc_type == 0x05 and desc_len == 0x02:
            info.incorrect_len_indicator = bool(desc[3] & 0x20)
        elif desc_type == 0x09 and desc_len == 0x0C:
            info.ata_status = _parse_ata_descriptor(desc)
        elif desc_type == 0x80 and desc_len == 0x02:
            info.vendor_unique_error = _be(desc, 2, 2)

        idx += desc_len + 2


def parse_sense(sense: bytes) -> SenseInfo:
    """Decode a sense buffer; raise SenseError if it is not valid sense data."""
    sense = bytes(sense)
    if not sense:
        raise SenseError("empty sense buffer")
    response_code = sense[0] & 0x7F
    if response_code not in (0x70, 0x71, 0x72, 0x73):
        raise SenseError(f"unknown sense response code 0x{response_code:02X}")

    info = SenseInfo(
        is_fixed=response_code in (0x70, 0x71),
        is_current=response_code in (0x70, 0x72),
    )
    if info.is_fixed:
        _parse_fixed(sense, info)
    else:
        _parse_descriptor(sense, info)
    return info