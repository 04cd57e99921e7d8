"""Opening a disk, scanning it end to end and watching its health."""

from __future__ import annotations

import dataclasses
import enum
import errno as errno_codes
import logging
import os
import random
import sys
import time
from dataclasses import dataclass, field
from typing import Callable

from .ata import SmartAttribute, parse_smart_read_data
from .datalog import DataLog, DiskInfo, RawLog
from .scanning import (
    Conclusion,
    IoResult,
    LatencyBucket,
    LatencyHistogram,
    ResultData,
    ResultError,
    ScanMode,
    calc_latency_stride,
    calc_scan_order,
    conclude,
    median,
    parse_scan_mode,
)
from .smart import (
    SmartTable,
    get_num_crc_errors,
    get_num_pending_reallocations,
    get_num_reallocations,
    get_temperature,
    smart_table_for_disk,
)

logger = logging.getLogger(__name__)

TEMP_THRESHOLD = 65
PROGRESS_FULL = 1000
MAX_UNKNOWN_ERRORS = 500
SLOW_READ_MSEC = 1000
FIX_LATENCY_MSEC = 3000
FIX_CHUNK = 4096
REALLOC_LIMIT = 1000
DEFAULT_LATENCY_GRAPH_LEN = 100


class DiskError(Exception):
    """Raised when a disk cannot be opened or scanned."""


class MountState(enum.IntEnum):
    """How a disk is mounted; higher values are riskier to write to."""

    NOT_MOUNTED = 0
    MOUNTED_RO = 1
    MOUNTED_RW = 2

    def describe(self) -> str:
        return {
            MountState.NOT_MOUNTED: "not mounted",
            MountState.MOUNTED_RO: "mounted read-only",
            MountState.MOUNTED_RW: "mounted read-write",
        }[self]


class BlockDevice:
    """A disk reached through an ordinary file or block device node.

    Such a node offers no ATA pass-through, so it reports no SMART data and
    identifies itself as a plain, non-ATA disk.
    """

    def __init__(self, path: str, writable: bool = False, sector_size: int = 512) -> None:
        self.path = path
        self.sector_size = sector_size
        self._fd: int | None = os.open(path, os.O_RDWR if writable else os.O_RDONLY)

    def __enter__(self) -> "BlockDevice":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _handle(self) -> int:
        if self._fd is None:
            raise OSError(errno_codes.EBADF, "device is closed")
        return self._fd

    def read_capacity(self) -> tuple[int, int]:
        """Return (size in bytes, sector size)."""
        return os.lseek(self._handle(), 0, os.SEEK_END), self.sector_size

    def identify(self) -> DiskInfo:
        """Identity of the disk; a plain node has none to report."""
        return DiskInfo()

    def read(self, offset: int, size: int) -> tuple[bytes, IoResult, int]:
        """Read ``size`` bytes; return (data, result, errno or 0)."""
        try:
            data = os.pread(self._handle(), size, offset)
        except OSError as exc:
            error = ResultError.UNCORRECTED if exc.errno == errno_codes.EIO else ResultError.UNKNOWN
            return b"", IoResult(data=ResultData.NONE, error=error), exc.errno or 0
        if len(data) == size:
            return data, IoResult(), 0
        kind = ResultData.PARTIAL if data else ResultData.NONE
        return data, IoResult(data=kind), 0

    def write(self, offset: int, data: bytes) -> tuple[int, IoResult]:
        """Write ``data``; return (bytes written, result)."""
        try:
            written = os.pwrite(self._handle(), data, offset)
        except OSError as exc:
            error = ResultError.UNCORRECTED if exc.errno == errno_codes.EIO else ResultError.UNKNOWN
            return -1, IoResult(data=ResultData.NONE, error=error)
        kind = ResultData.FULL if written == len(data) else ResultData.PARTIAL
        return written, IoResult(data=kind)

    def ata_smart_status(self) -> bool | None:
        """SMART health (True when fine), None when it cannot be asked."""
        return None

    def ata_smart_read_data(self) -> tuple[bytes, IoResult]:
        """Raw SMART READ DATA page and the result of fetching it."""
        return b"", IoResult(data=ResultData.NONE, error=ResultError.UNKNOWN)

    def close(self) -> None:
        """Close the device; later calls do nothing."""
        if self._fd is not None:
            os.close(self._fd)
            self._fd = None


class Reporter:
    """Receives progress and per-read events during a scan."""

    def progress(self, disk: "Disk", part: int, full: int) -> None:
        logger.debug("Progress %d/%d on %s", part, full, disk.path)

    def scan_error(self, disk: "Disk", offset: int, size: int, t_nsec: int) -> None:
        logger.debug("Read error at %d size %d took %d nsec", offset, size, t_nsec)

    def scan_success(self, disk: "Disk", offset: int, size: int, t_nsec: int) -> None:
        logger.debug("Read at %d size %d took %d nsec", offset, size, t_nsec)

    def scan_done(self, disk: "Disk") -> None:
        logger.debug("Scan of %s done: %s", disk.path, disk.conclusion.value)


def smart_trip(device) -> bool | None:
    """True if the disk reports a SMART trip, False if healthy, None if unknown."""
    status = device.ata_smart_status()
    if status is None:
        return None
    return not status


def smart_attributes(device) -> list[SmartAttribute] | None:
    """SMART attributes of the disk, or None if they cannot be read."""
    data, io_res = device.ata_smart_read_data()
    if io_res.data is not ResultData.FULL:
        return None
    try:
        return parse_smart_read_data(data)
    except ValueError:
        return None


def _same_disk(source: str, target: str) -> bool:
    if source == target:
        return True
    if not source.startswith(target):
        return False
    suffix = source[len(target):]
    return suffix.lstrip("p").isdigit()


def _mount_state(path: str) -> MountState:
    target = os.path.realpath(path)
    try:
        with open("/proc/self/mounts", encoding="utf-8") as mounts:
            lines = mounts.read().splitlines()
    except OSError:
        return MountState.NOT_MOUNTED
    state = MountState.NOT_MOUNTED
    for line in lines:
        fields = line.split()
        if len(fields) < 4 or not fields[0].startswith("/"):
            continue
        if not _same_disk(os.path.realpath(fields[0]), target):
            continue
        found = MountState.MOUNTED_RO if "ro" in fields[3].split(",") else MountState.MOUNTED_RW
        state = max(state, found)
    return state


def _mount_allowed(path: str, allowed: MountState) -> bool:
    state = _mount_state(path)
    if state > allowed:
        logger.error(
            "Disk is currently %s and we only allow %s, use --force-mounted or "
            "--force-mounted-rw if the risk of problems is acceptable",
            state.describe(),
            allowed.describe(),
        )
        return False
    if state is not MountState.NOT_MOUNTED:
        logger.info("Disk is %s but this is allowed with a force option", state.describe())
    return True


def _set_realtime(enabled: bool) -> None:
    if not hasattr(os, "sched_setscheduler"):
        return
    policy = os.SCHED_RR if enabled else os.SCHED_OTHER
    try:
        os.sched_setscheduler(0, policy, os.sched_param(1 if enabled else 0))
    except OSError:
        pass


class _Spinner:
    _FORMS = "|/-\\|/-\\"

    def __init__(self) -> None:
        self._index = 1
        sys.stdout.write(f"{self._FORMS[0]}\r")
        sys.stdout.flush()

    def update(self) -> None:
        sys.stdout.write(f"\r{self._FORMS[self._index]}\r")
        self._index = (self._index + 1) % len(self._FORMS)
        sys.stdout.flush()

    def done(self) -> None:
        sys.stdout.write("\r" + " " * 27 + "\r")
        sys.stdout.flush()


@dataclass
class _AtaState:
    is_smart_tripped: bool = False
    smart_table: SmartTable | None = None
    last_temp: int | None = None
    last_reallocs: int | None = None
    last_pending_reallocs: int | None = None
    last_crc_errors: int | None = None


@dataclass
class _ScanState:
    latency_stride: int
    latency_bucket: int = 0
    latencies: list[int] = field(default_factory=list)
    progress_bytes: int = 0
    progress_part: int = 0
    num_unknown_errors: int = 0


class Disk:
    """An open disk that can be scanned for read errors and slow regions."""

    def __init__(
        self,
        path: str,
        fix: bool = False,
        latency_graph_len: int = DEFAULT_LATENCY_GRAPH_LEN,
        allowed_mount: MountState = MountState.NOT_MOUNTED,
        *,
        device=None,
        reporter: Reporter | None = None,
        data_log: DataLog | None = None,
        raw_log: RawLog | None = None,
        sleep: Callable[[float], object] = time.sleep,
        rng: random.Random | None = None,
    ) -> None:
        self.path = path
        self.fix = fix
        self.device = None
        self.reporter = reporter if reporter is not None else Reporter()
        self.data_log = data_log
        self.raw_log = raw_log
        self.info = DiskInfo()
        self.histogram = LatencyHistogram(1, 60 * 1000 * 1000, 3)
        self.latency_graph: list[LatencyBucket] = []
        self.num_errors = 0
        self.conclusion = Conclusion.SCAN_PROBLEM
        self.run = False
        self._sleep = sleep
        self._rng = rng
        self._ata = _AtaState()
        self._closed = False

        logger.info("Validating path %s", path)
        if not os.path.exists(path):
            raise DiskError(f"Disk path {path} does not exist")
        access_mode = os.R_OK | (os.W_OK if fix else 0)
        if not os.access(path, access_mode):
            raise DiskError(f"Disk path {path} is inaccessible")
        if fix and not _mount_allowed(path, allowed_mount):
            raise DiskError(
                "Better not fix with the disk mounted, mounted fs may get confused "
                "when data is possibly modified under its feet"
            )
        try:
            self.device = device if device is not None else BlockDevice(path, writable=fix)
        except OSError as exc:
            raise DiskError(f"Failed to open path {path}: {exc}") from exc

        try:
            self._setup(latency_graph_len)
        except BaseException:
            self.close()
            raise

    def _setup(self, latency_graph_len: int) -> None:
        try:
            num_bytes, sector_size = self.device.read_capacity()
        except OSError as exc:
            raise DiskError(f"Can't get block device size information for path {self.path}: {exc}") from exc
        if num_bytes == 0:
            raise DiskError("Invalid number of sectors")
        if sector_size == 0 or sector_size % 512 != 0:
            raise DiskError(f"Invalid sector size {sector_size}")
        try:
            ident = self.device.identify()
        except OSError as exc:
            raise DiskError(f"Can't identify disk for path {self.path}: {exc}") from exc
        self.info = dataclasses.replace(ident, num_bytes=num_bytes, sector_size=sector_size)

        if latency_graph_len < 1:
            raise DiskError("Latency graph needs at least one entry")
        self.latency_graph = [LatencyBucket() for _ in range(latency_graph_len)]

        if self.info.is_ata:
            self._ata_monitor_start()
        logger.info("Opened disk %s sector size %d num bytes %d", self.path, sector_size, num_bytes)

    def __enter__(self) -> "Disk":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def num_bytes(self) -> int:
        return self.info.num_bytes

    @property
    def sector_size(self) -> int:
        return self.info.sector_size

    def close(self) -> None:
        """Finish health monitoring and release the device."""
        if self._closed:
            return
        self._closed = True
        if self.device is not None and self.info.is_ata:
            self._ata_monitor_end()
        logger.info("Closed disk %s", self.path)
        if self.device is not None:
            self.device.close()

    def stop(self) -> None:
        """Ask a running scan to stop after the current read."""
        self.run = False

    # Scanning

    def scan(self, mode: ScanMode | str, data_size: int) -> Conclusion:
        """Read the whole disk in ``data_size`` steps and return the verdict."""
        if isinstance(mode, str):
            mode = parse_scan_mode(mode)
        self.run = True
        self.conclusion = Conclusion.SCAN_PROBLEM
        sector_size = self.sector_size

        if data_size % sector_size != 0:
            data_size -= data_size % sector_size
            if data_size == 0:
                data_size = sector_size
            logger.error(
                "Cannot scan data not in multiples of the sector size, adjusted scan size to %d", data_size
            )

        _set_realtime(True)
        started = time.monotonic()
        logger.info("Scanning disk %s in %d byte steps", self.path, data_size)
        logger.info("Scan started at: %s", time.ctime())
        try:
            if data_size <= 0:
                raise DiskError(f"Failed to allocate data buffer of {data_size} bytes")
            stride = calc_latency_stride(self.num_bytes, sector_size, len(self.latency_graph))
            logger.debug("latency stride is %d", stride)
            try:
                order = calc_scan_order(mode, stride, data_size, sector_size, self._rng)
            except ValueError as exc:
                raise DiskError("Failed to generate scan order") from exc

            state = _ScanState(latency_stride=stride)
            stride_bytes = stride * sector_size
            for offset in range(0, self.num_bytes, stride_bytes):
                if not self.run:
                    break
                logger.debug(
                    "Scanning stride starting at %d done %d%%", offset, offset * 100 // self.num_bytes
                )
                self._progress(state, 0)
                self._bucket_prepare(state, offset)
                if not self._scan_stride(state, offset, data_size, order):
                    break
                self._bucket_finish(state, offset + stride_bytes)
                if self.info.is_ata:
                    self._ata_monitor()

            if not self.run:
                logger.info("Disk scan interrupted")
                self.conclusion = Conclusion.ABORTED
            else:
                self.conclusion = conclude(self.num_errors, self.histogram)
                if self.conclusion is Conclusion.PASSED:
                    logger.debug("Disk has passed the test")
            self.reporter.scan_done(self)
            return self.conclusion
        finally:
            _set_realtime(False)
            self.run = False
            logger.info("Scan ended at: %s", time.ctime())
            logger.info("Scan took %d second", int(time.monotonic() - started))

    def _progress(self, state: _ScanState, add: int) -> None:
        if add:
            state.progress_bytes += add
            part = state.progress_bytes * PROGRESS_FULL // self.num_bytes
            changed = part != state.progress_part
            state.progress_part = part
        else:
            changed = True
        if changed:
            self.reporter.progress(self, state.progress_part, PROGRESS_FULL)

    def _bucket_prepare(self, state: _ScanState, offset: int) -> None:
        self.latency_graph[state.latency_bucket] = LatencyBucket(start_sector=offset // self.sector_size)
        state.latencies.clear()

    def _bucket_finish(self, state: _ScanState, offset: int) -> None:
        bucket = self.latency_graph[state.latency_bucket]
        bucket.end_sector = offset // self.sector_size
        bucket.latency_median_msec = median(state.latencies)
        state.latencies.clear()
        state.latency_bucket += 1

    def _bucket_add(self, state: _ScanState, latency_msec: int) -> None:
        bucket = self.latency_graph[state.latency_bucket]
        bucket.latency_min_msec = min(bucket.latency_min_msec, latency_msec)
        bucket.latency_max_msec = max(bucket.latency_max_msec, latency_msec)
        state.latencies.append(latency_msec)

    def _scan_stride(self, state: _ScanState, base: int, data_size: int, order: list[int]) -> bool:
        stride_end = min(base + state.latency_stride * self.sector_size, self.num_bytes)
        for relative in order:
            if not self.run:
                break
            offset = base + relative
            self._progress(state, data_size)
            remainder = stride_end - offset
            if remainder <= 0:
                continue
            if remainder < data_size:
                data_size = remainder
                logger.debug("Last part scanning size %d", data_size)
            if not self._scan_part(offset, data_size, state):
                return False
        return True

    def _scan_part(self, offset: int, size: int, state: _ScanState) -> bool:
        t_start = time.monotonic_ns()
        data, io_res, os_errno = self.device.read(offset, size)
        t_nsec = time.monotonic_ns() - t_start
        t_msec = t_nsec // 1_000_000

        lba = offset // self.sector_size
        length = size // self.sector_size
        if self.raw_log is not None:
            self.raw_log.log(lba, length, io_res, t_nsec)
        if self.data_log is not None:
            self.data_log.log(lba, length, io_res, t_nsec)

        error = False
        if io_res.data is not ResultData.FULL or io_res.error is not ResultError.NONE:
            logger.error(
                "Error when reading at offset %d size %d read %d, errno=%d: %s",
                offset, size, len(data), os_errno, os.strerror(os_errno) if os_errno else "",
            )
            logger.error(
                "Details: error=%s data=%s %02X/%02X/%02X",
                io_res.error.value, io_res.data.value,
                int(io_res.info.sense_key), io_res.info.asc, io_res.info.ascq,
            )
            self.reporter.scan_error(self, offset, size, t_nsec)
            self.num_errors += 1
            error = True
            if io_res.error is ResultError.FATAL:
                logger.error("Fatal error occurred, bailing out.")
                return False
            if io_res.error is ResultError.UNKNOWN or os_errno not in (errno_codes.EIO, 0):
                previous = state.num_unknown_errors
                state.num_unknown_errors += 1
                if previous > MAX_UNKNOWN_ERRORS:
                    logger.error("%d unknown errors occurred, assuming fatal issue.", state.num_unknown_errors)
                    return False
                logger.error(
                    "Unknown error occurred, possibly untranslated error by storage layers, trying to continue."
                )
        else:
            state.num_unknown_errors = 0
            self.reporter.scan_success(self, offset, size, t_nsec)

        self.histogram.record(t_nsec // 1000)
        self._bucket_add(state, t_msec)

        if t_msec > SLOW_READ_MSEC:
            logger.debug("Scanning at offset %d took %d msec", offset, t_msec)

        if self.fix and (t_msec > FIX_LATENCY_MSEC or error):
            self._fix_region(offset, size, data, io_res)
        return True

    def _fix_region(self, offset: int, size: int, data: bytes, io_res: IoResult) -> None:
        if io_res.error is not ResultError.UNCORRECTED:
            logger.info("Fixing region by rewriting, offset=%d size=%d", offset, size)
            written, _ = self.device.write(offset, data.ljust(size, b"\x00")[:size])
            if written != size:
                logger.error("Error while attempting to rewrite the data! ret=%d", written)
            return

        # Zero out what cannot be read so later reads are not confused by it.
        fix_size = min(FIX_CHUNK, size)
        for fix_offset in range(0, size - fix_size + 1, fix_size):
            _, chunk_res, _ = self.device.read(offset + fix_offset, fix_size)
            if chunk_res.error is ResultError.UNCORRECTED:
                logger.info(
                    "Fixing uncorrectable region by writing zeros, offset=%d size=%d",
                    offset + fix_offset, fix_size,
                )
                written, _ = self.device.write(offset + fix_offset, bytes(fix_size))
                if written != fix_size:
                    logger.error("Error while attempting to overwrite uncorrectable data! ret=%d", written)

    # ATA health monitoring

    def _table(self) -> SmartTable:
        if self._ata.smart_table is None:
            self._ata.smart_table = smart_table_for_disk(self.info.vendor, self.info.model, self.info.fw_rev)
        return self._ata.smart_table

    def _ata_monitor_start(self) -> None:
        if smart_trip(self.device) is True:
            logger.error("Disk has a SMART TRIP at the start of the test, it should be discarded anyhow")
            self._ata.is_smart_tripped = True
        else:
            self._ata.is_smart_tripped = False

        table = self._table()
        attrs = smart_attributes(self.device)
        if not attrs:
            logger.error("Failed to read SMART attributes from device")
            return

        temp = get_temperature(attrs, table)
        self._ata.last_temp = temp.current if temp is not None else None
        if temp is not None and temp.min is not None and temp.max is not None and (temp.min > 0 or temp.max > 0):
            logger.info(
                "Disk start temperature is %d (lifetime min %d and lifetime max %d)",
                temp.current, temp.min, temp.max,
            )
        else:
            logger.info("Disk start temperature is %s", self._ata.last_temp)

        self._ata.last_reallocs = get_num_reallocations(attrs, table)
        self._ata.last_pending_reallocs = get_num_pending_reallocations(attrs, table)
        self._ata.last_crc_errors = get_num_crc_errors(attrs, table)

    def _ata_monitor(self) -> None:
        if not self._ata.is_smart_tripped and smart_trip(self.device) is True:
            logger.error("Disk has a SMART TRIP in the middle of the test, it should be discarded!")
            self._ata.is_smart_tripped = True

        attrs = smart_attributes(self.device)
        if not attrs:
            logger.error("Failed to read SMART attributes from device")
            return
        self._check_temperature(attrs)
        self._check_reallocations(attrs)
        self._check_crc_errors(attrs)

    def _check_temperature(self, attrs: list[SmartAttribute]) -> None:
        table = self._table()
        temp = get_temperature(attrs, table)
        current = temp.current if temp is not None else None

        if current != self._ata.last_temp:
            logger.info("Disk temperature changed from %s to %s", self._ata.last_temp, current)
            self._ata.last_temp = current

        if current is None or current < TEMP_THRESHOLD:
            return

        logger.info("Pausing scan due to high disk temperature")
        spinner = _Spinner()
        while current is not None and current >= TEMP_THRESHOLD:
            self._sleep(1)
            spinner.update()
            attrs = smart_attributes(self.device)
            if not attrs:
                logger.error("Failed to read temperature while paused!")
                break
            temp = get_temperature(attrs, table)
            current = temp.current if temp is not None else None
        spinner.done()
        logger.info("Finished pause, temperature is now %s", current)

    def _check_reallocations(self, attrs: list[SmartAttribute]) -> None:
        table = self._table()
        reallocs = get_num_reallocations(attrs, table)
        pending = get_num_pending_reallocations(attrs, table)

        last = self._ata.last_reallocs
        if reallocs is not None and (last is None or reallocs > last):
            logger.info("Number of reallocated sectors increased from %s to %d", last, reallocs)
            self._ata.last_reallocs = reallocs

        if pending != self._ata.last_pending_reallocs:
            logger.info(
                "Number of pending sectors for reallocations changed from %s to %s",
                self._ata.last_pending_reallocs, pending,
            )
            self._ata.last_pending_reallocs = pending

    def _check_crc_errors(self, attrs: list[SmartAttribute]) -> None:
        crc_errors = get_num_crc_errors(attrs, self._table())
        if crc_errors != self._ata.last_crc_errors:
            logger.error(
                "CRC errors increased from %s to %s, your problem is not the disk but in a cable most likely!",
                self._ata.last_crc_errors, crc_errors,
            )
            self._ata.last_crc_errors = crc_errors

    def _ata_monitor_end(self) -> None:
        if smart_trip(self.device) is True:
            logger.error("Disk has a SMART TRIP at the end of the test, it should be discarded!")
        elif self._ata.is_smart_tripped:
            logger.error("Disk had a SMART TRIP during the test but it disappeared. This is super weird!!!")

        attrs = smart_attributes(self.device) or []
        table = self._table()
        reallocs = get_num_reallocations(attrs, table)
        pending = get_num_pending_reallocations(attrs, table)

        if pending is not None and pending > 0:
            logger.info(
                "At the end of the test there are still some sectors pending reallocation, "
                "this is rather unexpected but can be lived with."
            )
        if reallocs is not None and reallocs > REALLOC_LIMIT:
            logger.info("Number of reallocated sectors is above 1000, you should probably stop using this disk!")