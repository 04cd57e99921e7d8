"""Parsers for SCSI INQUIRY, READ CAPACITY, defect data and log pages."""

from __future__ import annotations

from dataclasses import dataclass

SCSI_VENDOR_LEN = 8
SCSI_MODEL_LEN = 16
SCSI_FW_REVISION_LEN = 4
SCSI_SERIAL_LEN = 8

_DEFECT_DATA_FORMATS = (
    "Short",
    "Reserved (1)",
    "Reserved (2)",
    "Long",
    "Index",
    "Physical",
    "Vendor",
    "Reserved (7)",
)


@dataclass(frozen=True)
class Inquiry:
    """Standard INQUIRY data."""

    device_type: int
    vendor: str = ""
    model: str = ""
    revision: str = ""
    serial: str = ""


@dataclass(frozen=True)
class ReadCapacity10:
    """READ CAPACITY (10) response."""

    max_lba: int
    block_size: int


@dataclass(frozen=True)
class ReadCapacity16:
    """READ CAPACITY (16) response."""

    max_lba: int
    block_size: int
    prot_enable: bool
    p_type: int
    p_i_exponent: int
    logical_blocks_per_physical_block_exponent: int
    thin_provisioning_enabled: bool
    thin_provisioning_zero: bool
    lowest_aligned_lba: int


@dataclass(frozen=True)
class InformationalExceptions:
    """Values from the informational exceptions log page (0x2F)."""

    asc: int
    ascq: int
    temperature: int


def _c_string(raw: bytes) -> str:
    return raw.split(b"\x00", 1)[0].decode("latin-1")


def parse_inquiry(buf: bytes) -> Inquiry:
    """Parse standard INQUIRY data; raise ValueError if it is too short."""
    buf = bytes(buf)
    if len(buf) < 32:
        raise ValueError(f"INQUIRY data needs 32 bytes, got {len(buf)}")

    fmt = buf[3] & 0xF
    valid_len = buf[4] + 4

    def field(start: int, size: int) -> str:
        return _c_string(buf[start:start + size])

    vendor = field(8, SCSI_VENDOR_LEN) if valid_len >= 8 + SCSI_VENDOR_LEN else ""
    model = field(16, SCSI_MODEL_LEN) if valid_len >= 16 + SCSI_MODEL_LEN else ""
    revision = field(32, SCSI_FW_REVISION_LEN) if valid_len >= 32 + SCSI_FW_REVISION_LEN else ""
    serial = field(36, SCSI_SERIAL_LEN) if valid_len >= 44 and fmt == 2 else ""

    return Inquiry(
        device_type=buf[0] & 0x1F,
        vendor=vendor,
        model=model,
        revision=revision,
        serial=serial,
    )


def parse_read_capacity_10(buf: bytes) -> ReadCapacity10:
    """Parse a READ CAPACITY (10) response; raise ValueError if too short."""
    buf = bytes(buf)
    if len(buf) < 8:
        raise ValueError(f"READ CAPACITY (10) data needs 8 bytes, got {len(buf)}")
    return ReadCapacity10(
        max_lba=int.from_bytes(buf[0:4], "big"),
        block_size=int.from_bytes(buf[4:8], "big"),
    )


def parse_read_capacity_16(buf: bytes) -> ReadCapacity16:
    """Parse a READ CAPACITY (16) response; raise ValueError if too short."""
    buf = bytes(buf)
    if len(buf) < 16:
        raise ValueError(f"READ CAPACITY (16) data needs 16 bytes, got {len(buf)}")
    return ReadCapacity16(
        max_lba=int.from_bytes(buf[0:8], "big"),
        block_size=int.from_bytes(buf[8:12], "big"),
        prot_enable=bool(buf[12] & 1),
        p_type=(buf[12] & 0x0E) >> 1,
        p_i_exponent=(buf[13] & 0xF0) >> 4,
        logical_blocks_per_physical_block_exponent=buf[13] & 0x0F,
        thin_provisioning_enabled=bool(buf[14] & 0x80),
        thin_provisioning_zero=bool(buf[14] & 0x40),
        lowest_aligned_lba=((buf[14] & 0x3F) << 8) | buf[15],
    )


def read_defect_data_format_to_str(fmt: int) -> str:
    """Name of a defect list address format."""
    if not 0 <= fmt <= 7:
        return "Unknown"
    return _DEFECT_DATA_FORMATS[fmt]


def log_sense_informational_exceptions(page: bytes) -> InformationalExceptions | None:
    """Extract ASC, ASCQ and temperature from log page 0x2F, or None."""
    page = bytes(page)
    if len(page) < 4:
        return None
    if page[0] & 0x3F != 0x2F:
        return None
    subpage_format = bool(page[0] & 0x40)
    if subpage_format and page[1] != 0:
        return None

    end = min(len(page), 4 + int.from_bytes(page[2:4], "big"))
    pos = 4
    while pos + 4 <= end:
        param_code = int.from_bytes(page[pos:pos + 2], "big")
        param_len = page[pos + 3]
        data = page[pos + 4:pos + 4 + param_len]
        if pos + 4 + param_len > end:
            break
        if param_code == 0:
            if len(data) < 3:
                return None
            return InformationalExceptions(asc=data[0], ascq=data[1], temperature=data[2])
        pos += 4 + param_len
    return None