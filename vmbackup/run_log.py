"""
Human-readable run log kept in the backup destination.

The file starts with a header block written on first use::

    KVM backup log
    Host: kvmhost
    Source: /var/lib/libvirt/images
    Destination: /mnt/backup/kvm
    Start: 2026-10-19
    End:
    ----------------------------------------

Each later run rewrites only the ``End:`` line. Full-fleet runs append one
completion line followed by a blank line. The file is not locked; only one
instance of the tool should run against a destination at a time.
"""
import socket
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional, Sequence

from .config import BackupSettings
from .models import ExitCode, VMBackupError
from .logging_config import get_logger

TITLE = "KVM backup log"
END_FIELD = "End:"
SEPARATOR = "-" * 40
TOOL_NAME = "vmbackup"
DATE_FORMAT = "%Y-%m-%d"
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


class RunLog:
    """Run log at ``destination_path/log_file_name``"""

    def __init__(self, settings: BackupSettings,
                 clock: Callable[[], datetime] = datetime.now,
                 hostname: Optional[str] = None):
        self.settings = settings
        self.path = settings.log_file
        self.clock = clock
        self.hostname = hostname or socket.gethostname()
        self.logger = get_logger("vmbackup.run_log")

    def ensure_log(self) -> Path:
        """Check both directories exist, then create the log or refresh its End line"""
        destination = Path(self.settings.destination_path)
        source = Path(self.settings.source_path)
        if not destination.is_dir():
            raise VMBackupError(ExitCode.DESTINATION_MISSING,
                                f"Destination path {destination} does not exist")
        if not source.is_dir():
            raise VMBackupError(ExitCode.SOURCE_MISSING,
                                f"Source path {source} does not exist")

        today = self.clock().strftime(DATE_FORMAT)
        if not self.path.exists():
            self.path.write_text(self._header(today), encoding='utf-8')
            self.logger.info("Run log created", path=str(self.path))
        else:
            self._update_end(today)
            self.logger.info("Run log end date updated", path=str(self.path), end=today)
        return self.path

    def record_completion(self, action: str, processed: Sequence[str]) -> str:
        """Append the completion line for a full-fleet run; returns the line written"""
        timestamp = self.clock().strftime(TIMESTAMP_FORMAT)
        line = f"{action}: {', '.join(processed)} - done by {TOOL_NAME} on {timestamp}"
        with open(self.path, 'a', encoding='utf-8') as f:
            f.write(line + "\n\n")
        self.logger.info("Run log completion recorded", action=action, vm_count=len(processed))
        return line

    def _header(self, today: str) -> str:
        lines = [
            TITLE,
            f"Host: {self.hostname}",
            f"Source: {self.settings.source_path}",
            f"Destination: {self.settings.destination_path}",
            f"Start: {today}",
            END_FIELD,
            SEPARATOR,
            "",
        ]
        return "\n".join(lines) + "\n"

    def _update_end(self, today: str) -> None:
        lines = self.path.read_text(encoding='utf-8').splitlines(keepends=True)
        for index, line in enumerate(lines):
            if line.rstrip("\n") == SEPARATOR:
                break
            if line.startswith(END_FIELD):
                lines[index] = f"{END_FIELD} {today}\n"
                self.path.write_text("".join(lines), encoding='utf-8')
                return
        self.logger.warning("Run log has no End line in its header", path=str(self.path))
