"""ATA pass-through helpers: checksums, status registers and SMART data."""

from __future__ import annotations

from dataclasses import dataclass

from .sense import AtaStatus, SenseError, parse_sense

MAX_SMART_ATTRS = 30
_SMART_ATTR_SIZE = 12
_SMART_ATTR_OFFSET = 2


@dataclass(frozen=True)
class SmartAttribute:
    """One entry of SMART READ DATA."""

    id: int
    status: int
    value: int
    min: int
    raw: int


@dataclass(frozen=True)
class SmartThreshold:
    """One entry of SMART READ THRESHOLDS."""

    id: int
    threshold: int


def get_word(buf: bytes, index: int) -> int:
    """Return the little-endian 16-bit ATA word at word ``index``."""
    return int.from_bytes(bytes(buf[index * 2:index * 2 + 2]), "little")


def checksum_ok(buf: bytes) -> bool:
    """True if the 512-byte sector sums to zero modulo 256."""
    buf = bytes(buf)
    if len(buf) < 512:
        return False
    return sum(buf[:512]) & 0xFF == 0


def identify_checksum_ok(buf: bytes) -> bool:
    """Verify an IDENTIFY buffer checksum if it claims to have one."""
    buf = bytes(buf)
    if len(buf) != 512:
        return False
    if buf[511] != 0xA5:
        return True
    return checksum_ok(buf)


def ata_status_from_fixed_info(information: int, cmd_specific: int) -> AtaStatus:
    """Decode ATA registers packed into fixed-format sense fields."""
    lba_high = (cmd_specific >> 8) & 0xFF
    lba_mid = (cmd_specific >> 16) & 0xFF
    lba_low = (cmd_specific >> 24) & 0xFF
    return AtaStatus(
        extend=bool(cmd_specific & 0x80),
        error=information & 0xFF,
        status=(information >> 8) & 0xFF,
        device=(information >> 16) & 0xFF,
        sector_count=(information >> 24) & 0xFF,
        lba=(lba_high << 16) | (lba_mid << 8) | lba_low,
    )


def ata_status_from_sense(sense: bytes) -> AtaStatus | None:
    """Return the ATA status carried in descriptor sense data, or None."""
    try:
        info = parse_sense(sense)
    except SenseError:
        return None
    return info.ata_status


def smart_read_data_version(buf: bytes) -> int:
    """Revision number of a SMART READ DATA page."""
    return get_word(buf, 0)


def _raw_entries(buf: bytes, max_attrs: int):
    if not checksum_ok(buf):
        raise ValueError("SMART data checksum mismatch")
    buf = bytes(buf)
    for i in range(min(MAX_SMART_ATTRS, max_attrs)):
        start = _SMART_ATTR_OFFSET + _SMART_ATTR_SIZE * i
        entry = buf[start:start + _SMART_ATTR_SIZE]
        if entry[0] == 0:
            continue
        yield entry


def parse_smart_read_data(buf: bytes, max_attrs: int = MAX_SMART_ATTRS) -> list[SmartAttribute]:
    """Parse SMART READ DATA; raise ValueError on a bad checksum."""
    return [
        SmartAttribute(
            id=entry[0],
            status=entry[1] | (entry[2] << 8),
            value=entry[3],
            min=entry[4],
            raw=int.from_bytes(entry[5:11], "little"),
        )
        for entry in _raw_entries(buf, max_attrs)
    ]


def parse_smart_read_thresh(buf: bytes, max_attrs: int = MAX_SMART_ATTRS) -> list[SmartThreshold]:
    """Parse SMART READ THRESHOLDS; raise ValueError on a bad checksum."""
    return [
        SmartThreshold(id=entry[0], threshold=entry[1])
        for entry in _raw_entries(buf, max_attrs)
    ]