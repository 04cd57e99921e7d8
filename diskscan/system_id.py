"""Anonymised identification of the machine running the scan."""

from __future__ import annotations

import json
import subprocess
import uuid
from dataclasses import dataclass

from .sha1 import sha1_hex

_JSON_LIMIT = 2048
_LINE_LIMIT = 63


@dataclass
class SystemIdentifier:
    """Operating system name and hashed hardware serials of this machine."""

    os: str = ""
    system: str = ""
    chassis: str = ""
    baseboard: str = ""
    mac: str = ""

    def to_json(self) -> str:
        """JSON object describing the machine; "{}" if it would be too long."""
        text = (
            "{ \"System\": %s, \"Chassis\": %s, \"BaseBoard\": %s, \"Mac\": %s, \"OS\": %s }"
            % tuple(json.dumps(v) for v in (self.system, self.chassis, self.baseboard, self.mac, self.os))
        )
        if len(text) >= _JSON_LIMIT:
            return "{}"
        return text


def _command_first_line(args: list[str]) -> bytes | None:
    """First output line of a command, or None if it gives nothing."""
    try:
        result = subprocess.run(args, stdout=subprocess.PIPE, stderr=subprocess.DEVNULL, check=False)
    except OSError:
        return None
    output = result.stdout or b""
    if not output:
        return None
    return output.splitlines(keepends=True)[0][:_LINE_LIMIT]


def dmidecode_read(field_name: str) -> str:
    """SHA-1 of a dmidecode string field, or "" if it cannot be read."""
    line = _command_first_line(["dmidecode", "-s", field_name])
    if line is None:
        return ""
    if line[-1:] in (b"\r", b"\n"):
        line = line[:-1]
    return sha1_hex(line)


def _os_read() -> str:
    line = _command_first_line(["uname", "-o"])
    if line is None:
        return ""
    return line.decode("utf-8", errors="replace").rstrip()


def read_system_identifier() -> SystemIdentifier:
    """Collect the identifier of the current machine."""
    mac = uuid.getnode().to_bytes(6, "big")
    return SystemIdentifier(
        os=_os_read(),
        system=dmidecode_read("system-serial-number"),
        chassis=dmidecode_read("chassis-serial-number"),
        baseboard=dmidecode_read("baseboard-serial-number"),
        mac=sha1_hex(mac),
    )