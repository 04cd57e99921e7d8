"""Disk surface scanner with SCSI/ATA command, sense, SMART and logging helpers."""

__version__ = "0.1.0"

__all__ = [
    "ata",
    "cdb",
    "datalog",
    "progress",
    "scanner",
    "scanning",
    "scsi",
    "sense",
    "sha1",
    "smart",
    "system_id",
]