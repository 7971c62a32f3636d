"""
vmbackup - backup and restore of KVM virtual machines

Backs up each configured machine's libvirt definition and gzip-compressed
qcow2 disk image to a destination directory, restores them, and keeps a
human-readable run log next to the backups.
"""

__version__ = "1.0.0"

from .models import RunMode, RunScope, RunOptions, ExitCode, VMBackupError
from .config import BackupSettings, load_settings
from .backup_manager import BackupManager
from .run_log import RunLog

__all__ = [
    'RunMode',
    'RunScope',
    'RunOptions',
    'ExitCode',
    'VMBackupError',
    'BackupSettings',
    'load_settings',
    'BackupManager',
    'RunLog',
]
