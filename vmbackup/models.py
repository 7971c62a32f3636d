"""
Core models for the VM backup tool
"""
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from pathlib import Path
from typing import List, Optional


class ExitCode(IntEnum):
    """Process exit codes"""
    OK = 0
    INVALID_OPTION = 1
    NOT_ROOT = 2
    NO_OPTIONS = 3
    CONFLICTING_ACTIONS = 4
    NO_ACTION = 5
    NAME_WITHOUT_ACTION = 6
    MISSING_NAME = 7
    DESTINATION_MISSING = 8
    SOURCE_MISSING = 9
    CONFIG_INVALID = 10


class VMBackupError(Exception):
    """Fatal input or environment error that ends the run with an exit code"""

    def __init__(self, exit_code: ExitCode, message: str):
        super().__init__(message)
        self.exit_code = exit_code
        self.message = message


class RunMode(Enum):
    """Action selected on the command line"""
    BACKUP = "backup"
    RESTORE = "restore"

    @property
    def action_name(self) -> str:
        """Name written on the completion line of the run log"""
        return "Backup" if self is RunMode.BACKUP else "Restoration"


@dataclass(frozen=True)
class RunScope:
    """Either every configured machine or a single named one"""
    machine: Optional[str] = None

    @property
    def is_single(self) -> bool:
        return self.machine is not None


@dataclass(frozen=True)
class RunOptions:
    """Parsed command line"""
    mode: RunMode
    scope: RunScope = field(default_factory=RunScope)
    fresh_install: bool = False


@dataclass(frozen=True)
class CommandResult:
    """Outcome of one external call (libvirt, gzip, apt-get, file copy)"""
    command: str
    returncode: int
    stderr: str = ""

    @property
    def success(self) -> bool:
        return self.returncode == 0

    @classmethod
    def ok(cls, command: str) -> 'CommandResult':
        return cls(command=command, returncode=0)

    @classmethod
    def failed(cls, command: str, error: str, returncode: int = 1) -> 'CommandResult':
        return cls(command=command, returncode=returncode, stderr=error)


@dataclass
class VMOperationResult:
    """Steps run for one machine during a backup or restore"""
    vm_name: str
    mode: RunMode
    steps: List[CommandResult] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return all(step.success for step in self.steps)

    @property
    def failures(self) -> List[CommandResult]:
        return [step for step in self.steps if not step.success]


@dataclass
class RunSummary:
    """What a single invocation did"""
    options: RunOptions
    processed: List[str] = field(default_factory=list)
    vm_results: List[VMOperationResult] = field(default_factory=list)
    provisioning: List[CommandResult] = field(default_factory=list)
    completion_logged: bool = False

    @property
    def failed_vms(self) -> List[str]:
        return [result.vm_name for result in self.vm_results if not result.success]


@dataclass(frozen=True)
class VMFiles:
    """File locations for one machine"""
    name: str
    source_dir: Path
    destination_dir: Path

    @property
    def image(self) -> Path:
        return self.source_dir / f"{self.name}.qcow2"

    @property
    def source_definition(self) -> Path:
        return self.source_dir / f"{self.name}.xml"

    @property
    def definition(self) -> Path:
        return self.destination_dir / f"{self.name}.xml"

    @property
    def archive(self) -> Path:
        return self.destination_dir / f"{self.name}.qcow2.backup.gz"
