"""JSON logs of a disk scan: every I/O (raw log) or only the notable ones."""

from __future__ import annotations

import json
import time
from dataclasses import dataclass
from typing import Callable, Iterable, TextIO

from .scanning import (
    Conclusion,
    IoResult,
    LatencyBucket,
    LatencyHistogram,
    ResultData,
    ResultError,
    conclusion_to_str,
)
from .sense import SenseInfo
from .system_id import SystemIdentifier, read_system_identifier

# Only this many sense bytes are kept in the hex dump of an event.
SENSE_HEX_BYTES = 8
# An IDENTIFY DEVICE sector.
ATA_IDENTIFY_BYTES = 512
# Reads slower than this (in nanoseconds) are always logged.
SLOW_IO_NSEC = 1000 * 1000 * 1000


def _indent(level: int) -> str:
    return " " * (4 * level)


def buf_to_hex(buf: bytes, limit: int | None = None) -> str:
    """Upper-case hex of ``buf``, at most ``limit`` bytes of it when given."""
    data = bytes(buf)
    if limit is not None:
        data = data[:max(0, limit)]
    return data.hex().upper()


def sense_to_json(info: SenseInfo, sense: bytes) -> str:
    """One-line JSON object with the decoded sense and its leading hex bytes."""
    return (
        '{"SenseKey": %u, "Asc": %u, "Ascq": %u, "FruCode": %u, "VendorCode": %u, "Hex": "%s"}'
        % (
            int(info.sense_key),
            info.asc,
            info.ascq,
            info.fru_code if info.fru_code_valid else 0,
            info.vendor_unique_error,
            buf_to_hex(sense, SENSE_HEX_BYTES),
        )
    )


def _data_name(data: ResultData) -> str:
    return f"data_{data.value}"


def _error_name(error: ResultError) -> str:
    return f"error_{error.value}"


def _event_json(lba: int, length: int, io_res: IoResult, t_nsec: int) -> str:
    return (
        '{"LBA": %16d, "Len": %8d, "LatencyNSec": %8d, "Data": "%s", "Error": "%s", "Sense": %s}'
        % (
            lba,
            length,
            t_nsec,
            _data_name(io_res.data),
            _error_name(io_res.error),
            sense_to_json(io_res.info, io_res.sense),
        )
    )


@dataclass
class DiskInfo:
    """Identity and geometry of the scanned disk."""

    vendor: str = ""
    model: str = ""
    fw_rev: str = ""
    serial: str = ""
    num_bytes: int = 0
    sector_size: int = 512
    is_ata: bool = False
    ata_buf: bytes = b""

    @property
    def num_sectors(self) -> int:
        return self.num_bytes // self.sector_size

    def to_json(self, indent: int) -> str:
        """JSON object for the disk, its fields indented ``indent`` levels."""
        pad = _indent(indent)
        fields = [
            f'"Vendor": {json.dumps(self.vendor)}',
            f'"Model": {json.dumps(self.model)}',
            f'"FwRev": {json.dumps(self.fw_rev)}',
            f'"Serial": {json.dumps(self.serial)}',
            f'"NumSectors": {self.num_sectors}',
            f'"SectorSize": {self.sector_size}',
        ]
        if self.is_ata and self.ata_buf:
            fields.append(f'"AtaIdentifyRaw": "{buf_to_hex(self.ata_buf, ATA_IDENTIFY_BYTES)}"')
        body = ",\n".join(pad + item for item in fields)
        return "{\n" + body + "\n" + pad + "}"


def _time_text(clock: Callable[[], float]) -> str:
    return time.strftime("%Y-%m-%d %H:%M:%S", time.gmtime(clock()))


class _EventLog:
    """Shared handling of a JSON file holding an array of events."""

    _event_indent = 2

    def __init__(self, filename: str) -> None:
        self._file: TextIO | None = open(filename, "w", encoding="utf-8")
        self._is_first = True

    def __enter__(self):
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def closed(self) -> bool:
        return self._file is None

    def _write(self, text: str) -> None:
        assert self._file is not None
        self._file.write(text)

    def _write_event(self, lba: int, length: int, io_res: IoResult, t_nsec: int) -> None:
        if self._is_first:
            self._is_first = False
        else:
            self._write(",\n")
        self._write(_indent(self._event_indent) + _event_json(lba, length, io_res, t_nsec))

    def close(self) -> None:
        """Close the file; later calls do nothing."""
        if self._file is not None:
            self._file.close()
            self._file = None


class RawLog(_EventLog):
    """Log of every I/O performed during a scan."""

    _event_indent = 2

    def __init__(self, filename: str, disk: DiskInfo) -> None:
        super().__init__(filename)
        self._write("{\n")
        self._write(_indent(1) + '"Disk": ' + disk.to_json(2) + ",\n")
        self._write(_indent(1) + '"Raw": [\n')

    def log(self, lba: int, length: int, io_res: IoResult, t_nsec: int) -> None:
        """Append one I/O event."""
        if self.closed:
            return
        self._write_event(lba, length, io_res, t_nsec)

    def close(self) -> None:
        """Terminate the JSON document and close the file."""
        if self.closed:
            return
        self._write("\n" + _indent(1) + "]\n}\n")
        super().close()


class DataLog(_EventLog):
    """Scan summary: disk, machine, notable events, latencies and verdict."""

    _event_indent = 3

    def __init__(
        self,
        filename: str,
        disk: DiskInfo,
        machine: SystemIdentifier | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        super().__init__(filename)
        self._clock = clock
        if machine is None:
            machine = read_system_identifier()
        self._write("{\n")
        self._write(_indent(1) + '"Disk": ' + disk.to_json(2) + ",\n")
        self._write(_indent(1) + '"Machine": ' + machine.to_json() + ",\n")
        self._write(_indent(1) + '"Scan": {\n')
        self._write(_indent(2) + f'"StartTime": "{_time_text(clock)}",\n')
        self._write(_indent(2) + '"Events": [\n')

    def log(self, lba: int, length: int, io_res: IoResult, t_nsec: int) -> None:
        """Record an I/O if it failed, returned partial data or was slow."""
        if self.closed:
            return
        if io_res.data is not ResultData.FULL or io_res.error is not ResultError.NONE or t_nsec > SLOW_IO_NSEC:
            self._write_event(lba, length, io_res, t_nsec)

    def end(
        self,
        histogram: LatencyHistogram,
        latency_graph: Iterable[LatencyBucket],
        conclusion: Conclusion,
    ) -> None:
        """Write the closing summary of the scan and finish the document."""
        if self.closed:
            return
        self._write("\n" + _indent(2) + "],\n")
        self._write(_indent(2) + f'"EndTime": "{_time_text(self._clock)}",\n')
        self._write(_indent(2) + f'"Histogram": "{histogram.encode()}",\n')

        self._write(_indent(2) + '"Latencies": [\n')
        rows = [
            _indent(3)
            + '{"StartSector": %16d, "EndSector": %16d, "LatencyMinMsec": %8d, '
            '"LatencyMaxMsec": %8d, "LatencyMedianMsec": %8d}'
            % (
                bucket.start_sector,
                bucket.end_sector,
                bucket.latency_min_msec,
                bucket.latency_max_msec,
                bucket.latency_median_msec,
            )
            for bucket in latency_graph
        ]
        self._write(",\n".join(rows) + "\n")
        self._write(_indent(2) + "],\n")

        self._write(_indent(2) + f'"Conclusion": {json.dumps(conclusion_to_str(conclusion))}\n')
        self._write(_indent(1) + "}\n")
        self._write("}\n")

    def close(self) -> None:
        """Close the file as it stands; call ``end`` first for a complete document."""
        super().close()