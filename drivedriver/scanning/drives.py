"""
Volume root discovery.

One enumerator per platform family, picked at runtime. None of them raise:
a probe that fails simply contributes no drives.
"""
import logging
import platform
import re
import string
from pathlib import Path
from typing import List, Optional

from .. import config

_OCTAL_ESCAPE = re.compile(r'\\([0-7]{3})')


class DriveEnumerator:
    def enumerate(self) -> List[Path]:
        raise NotImplementedError


class WindowsDriveEnumerator(DriveEnumerator):
    """Probes the single-letter roots A: through Z:."""

    def enumerate(self) -> List[Path]:
        drives = []
        for letter in string.ascii_uppercase:
            drive = Path(f"{letter}:\\")
            try:
                if drive.exists():
                    drives.append(drive)
            except OSError as e:
                logging.debug(f"Drive probe failed for {drive}: {e}")
        return drives


class VolumesDriveEnumerator(DriveEnumerator):
    """Lists the entries of a removable-volumes directory (macOS /Volumes)."""

    def __init__(self, volumes_dir: Path = config.MACOS_VOLUMES_DIR):
        self.volumes_dir = volumes_dir

    def enumerate(self) -> List[Path]:
        try:
            return sorted(self.volumes_dir.iterdir())
        except OSError as e:
            logging.warning(f"Cannot list {self.volumes_dir}: {e}")
            return []


class MountTableDriveEnumerator(DriveEnumerator):
    """
    Reads the live mount table (/proc/mounts) and drops pseudo filesystems.

    Bind mounts of the same device at different paths are reported once per
    path; they are not folded together.
    """

    def __init__(self, mounts_path: Path = config.MOUNT_TABLE_PATH):
        self.mounts_path = mounts_path

    def enumerate(self) -> List[Path]:
        try:
            content = self.mounts_path.read_text(encoding='utf-8', errors='replace')
        except OSError as e:
            logging.warning(f"Cannot read mount table {self.mounts_path}: {e}")
            content = ""
        return parse_mount_table(content)


def _decode_mount_point(raw: str) -> str:
    # The kernel escapes space, tab, newline and backslash as \040 etc.
    return _OCTAL_ESCAPE.sub(lambda m: chr(int(m.group(1), 8)), raw)


def is_pseudo_mount(mount_point: str) -> bool:
    return any(mount_point.startswith(prefix) for prefix in config.PSEUDO_MOUNT_PREFIXES)


def parse_mount_table(content: str) -> List[Path]:
    """
    Extracts real mount points from mount table text, in table order.
    The root filesystem is always included.
    """
    drives: List[Path] = []
    seen = set()
    for line in content.splitlines():
        parts = line.split()
        if len(parts) < 2:
            continue
        mount_point = _decode_mount_point(parts[1])
        if is_pseudo_mount(mount_point) or mount_point in seen:
            continue
        seen.add(mount_point)
        drives.append(Path(mount_point))

    if '/' not in seen:
        drives.append(Path('/'))
    return drives


def get_drive_enumerator(system: Optional[str] = None) -> DriveEnumerator:
    system = (system or platform.system()).lower()
    if system == 'windows':
        return WindowsDriveEnumerator()
    if system == 'darwin':
        return VolumesDriveEnumerator()
    # Linux and anything else with a /proc style mount table
    return MountTableDriveEnumerator()


def get_all_drives(enumerator: Optional[DriveEnumerator] = None) -> List[Path]:
    enumerator = enumerator or get_drive_enumerator()
    try:
        return enumerator.enumerate()
    except Exception as e:
        logging.error(f"Drive enumeration failed: {e}")
        return []
