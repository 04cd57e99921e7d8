# diskscan

`diskscan` reads a disk from start to end. It times every read, counts the
reads that fail, and gives a verdict on the disk's health. It also holds the
parts such a scanner needs:

- builders for SCSI command descriptor blocks (`diskscan.cdb`)
- decoders for SCSI sense data (`diskscan.sense`) and for INQUIRY, READ
  CAPACITY and informational-exceptions log pages (`diskscan.scsi`)
- ATA checksums, ATA status decoding and SMART page parsing (`diskscan.ata`)
- a SMART attribute table and readers for the key attributes (`diskscan.smart`)
- JSON logs of a scan (`diskscan.datalog`)
- terminal progress and status bars (`diskscan.progress`)
- a pure SHA-1 implementation (`diskscan.sha1`)

It is a library only. It installs no command.

## Scanning a disk

```python
from diskscan.scanner import Disk
from diskscan.scanning import ScanMode, conclusion_to_str

with Disk("/dev/sdX") as disk:
    conclusion = disk.scan(ScanMode.SEQ, 64 * 1024)
    print(conclusion_to_str(conclusion))
```

Opening a `Disk` checks that the path exists and that you may read it.
If you pass `fix=True`, it also checks that you may write it. It then reads
the size and sector size. Anything that goes wrong raises `DiskError`.

When `fix=True`, the mount state is also checked against `allowed_mount`.
`allowed_mount` is a `MountState` and defaults to `NOT_MOUNTED`. The check
reads `/proc/self/mounts`. If the disk is mounted more permissively than
`allowed_mount` permits, opening raises `DiskError`.

`Disk.scan(mode, data_size)` takes the mode as a `ScanMode` or as a string
that `parse_scan_mode` accepts: "seq", "sequential" or "random", in any case.

- The disk is divided into `latency_graph_len` strides, 100 by default.
  `calc_latency_stride` sets their size.
- Each stride is read in `data_size` steps. If `data_size` is not a multiple
  of the sector size, it is rounded down to one. It is never rounded below one
  sector.
- In random mode the reads within each stride are shuffled by
  `calc_scan_order`. You can pass a `random.Random` as `rng` to make the
  shuffle repeatable.
- Each stride is summarised in a `LatencyBucket` in `disk.latency_graph`. The
  bucket holds the minimum, maximum and median latency in milliseconds.
- Every read is recorded in microseconds in `disk.histogram`, a
  `LatencyHistogram`.

`Disk.stop()` ends a running scan after the current read. The conclusion is
then `Conclusion.ABORTED`. If the scan runs to the end, `conclude` sets the
conclusion from the error count and the histogram:

| Conclusion | When |
| --- | --- |
| `FAILED_IO_ERRORS` | any read failed |
| `FAILED_MAX_LATENCY` | the slowest read took more than 10 s |
| `FAILED_LATENCY_PERCENTILE` | the 99.99th-percentile read took more than 8 s |
| `PASSED` | none of the above |

With `fix=True` the scan rewrites regions that failed or took longer than
3 seconds. Regions reported as uncorrectable are read again in chunks of up to
4096 bytes. Each chunk that is still uncorrectable is overwritten with zeros.

A `Reporter` passed as `reporter=` receives progress events (in thousandths of
the whole), per-read success and error events, and the end of the scan.

### ATA health monitoring

If the device reports itself as ATA, `Disk` reads SMART at open, after every
stride and at close. It then:

- logs SMART trips
- logs changes in temperature, reallocated sectors, pending reallocations and
  CRC errors
- pauses the scan while the temperature is 65 °C or above

`smart_trip(device)` and `smart_attributes(device)` query a device object
directly.

### What the package does not do

`BlockDevice` is the device `Disk` uses by default. It reads and writes an
ordinary file or block device node through `os.pread` and `os.pwrite`. It does
not send SCSI or ATA pass-through commands. Consequences:

- It reports the sector size as 512 unless told otherwise.
- It reports no vendor, model or serial.
- It reports no SMART data, so the ATA monitoring above only runs for a device
  object you supply yourself via `Disk(..., device=...)`.

The CDB builders in `diskscan.cdb` produce command bytes, but nothing in the
package sends them to a disk. There is no command-line program.

## Logging

```python
from diskscan.datalog import DataLog, RawLog, DiskInfo

info = DiskInfo(vendor="ATA", model="Example Disk", num_bytes=1 << 30, sector_size=512)
log = DataLog("scan.json", info)
disk = Disk("/dev/sdX", data_log=log, raw_log=RawLog("raw.json", info))
disk.scan("seq", 64 * 1024)
log.end(disk.histogram, disk.latency_graph, disk.conclusion)
log.close()
disk.raw_log.close()
disk.close()
```

`DataLog` writes a JSON document with these parts:

- the disk description
- the machine identity
- start and end times in UTC
- the events for reads that failed, returned partial data or took longer than
  one second
- the encoded latency histogram
- the per-stride latencies
- the conclusion text

Call `end` before `close` to complete the document.

`RawLog` records every read. Its `close` finishes its JSON document.

The machine identity is a `SystemIdentifier`. Unless you pass `machine=`,
`read_system_identifier()` fills it in:

- the OS name comes from `uname -o`
- the system, chassis and baseboard serials come from `dmidecode -s`
- the MAC address is included as well

Every value except the OS name is stored as a SHA-1 digest. A value that
cannot be read is left empty.

## SCSI and ATA helpers

```python
from diskscan import cdb
from diskscan.sense import parse_sense, SenseError
from diskscan.scsi import parse_inquiry, parse_read_capacity_16

command = cdb.read_16(False, False, False, lba=2048, transfer_length_blocks=8)
command = cdb.inquiry(True, 0x80, 512)

try:
    info = parse_sense(sense_bytes)
except SenseError:
    ...  # empty, too short, or not fixed/descriptor format sense data
else:
    print(info.sense_key, info.asc, info.ascq, info.ata_status)
```

The parsers in `diskscan.scsi` return frozen dataclasses:

- `Inquiry`, `ReadCapacity10` and `ReadCapacity16`. A buffer too short to
  parse raises `ValueError`.
- `InformationalExceptions`, from `log_sense_informational_exceptions`. This
  returns `None` when the page is not log page 0x2F or lacks parameter 0.

In `diskscan.ata`:

- `checksum_ok` and `identify_checksum_ok` verify sector checksums.
- `ata_status_from_sense` returns the ATA status from descriptor-format sense
  data.
- `ata_status_from_fixed_info` decodes ATA status from fixed-format sense
  fields.
- `parse_smart_read_data` and `parse_smart_read_thresh` return lists of
  `SmartAttribute` and `SmartThreshold`. They raise `ValueError` on a bad
  checksum.

`diskscan.smart` interprets those attributes through the `SmartTable` that
`smart_table_for_disk` returns. It has one reader per key attribute:

- `get_temperature`, which returns a `Temperature` with lifetime minimum and
  maximum when the disk reports them
- `get_power_on_hours`
- `get_num_reallocations`
- `get_num_pending_reallocations`
- `get_num_crc_errors`

Each returns `None` when the disk does not report the attribute.

## Progress display

```python
from diskscan.progress import ProgressBar, StatusBar

with ProgressBar("Scanning", 1000) as bar:
    for _ in range(1000):
        bar.inc()

with StatusBar("Waiting") as spinner:
    spinner.inc()
```

Both bars draw on standard error unless given a `stream`. `ProgressBar` draws
a bar with an estimate of the time remaining. `ProgressBar.render()` returns
the line without drawing it. `StatusBar.finish()` prints the elapsed time.

## SHA-1

`diskscan.sha1.Sha1` is an incremental SHA-1 hash with `update`, `digest`,
`hexdigest` (upper case) and `copy`. `sha1_hex(data)` hashes data in one call.