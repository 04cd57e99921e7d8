"""SMART attribute database and interpretation of key attributes."""

from __future__ import annotations

import enum
import fnmatch
from dataclasses import dataclass
from typing import Iterable

from .ata import SmartAttribute


class SmartAttrType(enum.Enum):
    """Meaning of a SMART attribute that the scanner cares about."""

    NONE = "none"
    POH = "power_on_hours"
    TEMP = "temperature"
    REALLOC = "reallocations"
    REALLOC_PENDING = "pending_reallocations"
    CRC_ERRORS = "crc_errors"


@dataclass(frozen=True)
class SmartAttrInfo:
    """Description of one SMART attribute id."""

    id: int
    type: SmartAttrType
    name: str
    raw_format: str = "dec48"
    offset: int = -1


@dataclass(frozen=True)
class SmartTable:
    """A set of attribute descriptions that applies to some disks."""

    attrs: tuple[SmartAttrInfo, ...]

    def __len__(self) -> int:
        return len(self.attrs)

    def attr_for_id(self, attr_id: int) -> SmartAttrInfo | None:
        """Description of the attribute with this id, or None."""
        return next((attr for attr in self.attrs if attr.id == attr_id), None)

    def attr_for_type(self, attr_type: SmartAttrType) -> SmartAttrInfo | None:
        """First attribute description of this type, or None."""
        return next((attr for attr in self.attrs if attr.type == attr_type), None)


@dataclass(frozen=True)
class Temperature:
    """Current disk temperature with lifetime extremes when known."""

    current: int
    min: int | None = None
    max: int | None = None


def _attr(attr_id: int, name: str, attr_type: SmartAttrType = SmartAttrType.NONE, offset: int = -1) -> SmartAttrInfo:
    return SmartAttrInfo(id=attr_id, type=attr_type, name=name, offset=offset)


_DEFAULTS = SmartTable(
    attrs=(
        _attr(1, "Raw Read Error Rate"),
        _attr(2, "Throughput Performance"),
        _attr(3, "Spin Up Time"),
        _attr(4, "Start/Stop Count"),
        _attr(5, "Reallocated Sectors Count", SmartAttrType.REALLOC),
        _attr(7, "Seek Error Rate"),
        _attr(8, "Seek Time Performance"),
        _attr(9, "Power On Hours", SmartAttrType.POH),
        _attr(10, "Spin Retry Count"),
        _attr(11, "Drive Calibration Retry Count"),
        _attr(12, "Device Power Cycle Count"),
        _attr(13, "Read Soft Error Rate"),
        _attr(191, "G Sense Error Rate"),
        _attr(192, "Power Off Retract Count"),
        _attr(193, "Load/Unload Cycle Count"),
        _attr(194, "Temperature", SmartAttrType.TEMP, offset=150),
        _attr(195, "Hardware ECC Recovered"),
        _attr(196, "Reallocation Event Count"),
        _attr(197, "Pending Sector Reallocation Count", SmartAttrType.REALLOC_PENDING),
        _attr(198, "Off-Line Scan Uncorrecable Sector Count"),
        _attr(199, "CRC Error Count", SmartAttrType.CRC_ERRORS),
        _attr(200, "Multi-zone Error Rate"),
        _attr(240, "Head Flying Hours"),
        _attr(241, "Total LBAs Written"),
        _attr(242, "Total LBAs Read"),
        _attr(254, "Free Fall Sensor"),
    )
)

# Disk-specific tables: (vendor, model, firmware) glob patterns and their table.
# No disk has a table of its own yet, so every disk falls back to the defaults.
_DISK_TABLES: tuple[tuple[str, str, str, SmartTable], ...] = ()


def _matches(pattern: str, value: str | None) -> bool:
    return fnmatch.fnmatchcase((value or "").strip(), pattern)


def smart_table_for_disk(vendor: str | None, model: str | None, firmware: str | None) -> SmartTable:
    """Attribute table for a disk, the defaults when none is specific to it."""
    for vendor_pat, model_pat, fw_pat, table in _DISK_TABLES:
        if _matches(vendor_pat, vendor) and _matches(model_pat, model) and _matches(fw_pat, firmware):
            return table
    return _DEFAULTS


def _find(
    attrs: Iterable[SmartAttribute], table: SmartTable, attr_type: SmartAttrType
) -> tuple[SmartAttrInfo, SmartAttribute] | None:
    info = table.attr_for_type(attr_type)
    if info is None:
        return None
    found = next((attr for attr in attrs if attr.id == info.id), None)
    if found is None:
        return None
    return info, found


def _raw_of(attrs: Iterable[SmartAttribute], table: SmartTable, attr_type: SmartAttrType) -> int | None:
    match = _find(attrs, table, attr_type)
    return None if match is None else match[1].raw


def get_temperature(attrs: Iterable[SmartAttribute], table: SmartTable) -> Temperature | None:
    """Disk temperature from SMART data, or None if it is not reported."""
    match = _find(attrs, table, SmartAttrType.TEMP)
    if match is None:
        return None
    info, attr = match

    # Temperature is usually some offset minus the normalised value.
    if not attr.raw:
        return Temperature(current=info.offset - attr.value)

    current = attr.raw & 0xFFFF
    min_temp = (attr.raw >> 16) & 0xFFFF
    max_temp = (attr.raw >> 32) & 0xFFFF
    if min_temp <= current <= max_temp:
        return Temperature(current=current, min=min_temp, max=max_temp)
    return Temperature(current=current)


def get_power_on_hours(attrs: Iterable[SmartAttribute], table: SmartTable) -> int | None:
    """Power on hours, or None if not reported."""
    return _raw_of(attrs, table, SmartAttrType.POH)


def get_num_reallocations(attrs: Iterable[SmartAttribute], table: SmartTable) -> int | None:
    """Number of reallocated sectors, or None if not reported."""
    return _raw_of(attrs, table, SmartAttrType.REALLOC)


def get_num_pending_reallocations(attrs: Iterable[SmartAttribute], table: SmartTable) -> int | None:
    """Number of sectors pending reallocation, or None if not reported."""
    return _raw_of(attrs, table, SmartAttrType.REALLOC_PENDING)


def get_num_crc_errors(attrs: Iterable[SmartAttribute], table: SmartTable) -> int | None:
    """Number of interface CRC errors, or None if not reported."""
    return _raw_of(attrs, table, SmartAttrType.CRC_ERRORS)