"""
Backup and restore orchestration
"""
import shutil
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.markup import escape

from .archiver import compress_file, decompress_file
from .config import BackupSettings
from .host import provision_host
from .models import (
    CommandResult,
    RunMode,
    RunOptions,
    RunSummary,
    VMFiles,
    VMOperationResult,
)
from .run_log import RunLog
from .vm_manager import LibvirtManager
from .logging_config import get_logger, LogOperation


class BackupManager:
    """Runs the selected action over the selected machines, one at a time"""

    def __init__(self, settings: BackupSettings, run_log: RunLog,
                 vm_manager: Optional[LibvirtManager] = None,
                 console: Optional[Console] = None):
        self.settings = settings
        self.run_log = run_log
        self.vm_manager = vm_manager or LibvirtManager(settings.libvirt_uri)
        self.console = console or Console(stderr=True)
        self.logger = get_logger("vmbackup.backup_manager")

    async def execute(self, options: RunOptions) -> RunSummary:
        """Run one invocation.

        Restore with ``fresh_install`` only provisions the host. Otherwise each
        target is processed in order and its name recorded in
        ``summary.processed``. Only full-fleet runs append a completion line to
        the run log; single-machine runs never do.

        Failures of external steps are logged and left in the summary; they do
        not stop the run.
        """
        summary = RunSummary(options=options)

        if options.mode is RunMode.RESTORE and options.fresh_install:
            with LogOperation(self.logger, "provision_host"):
                with self.console.status("Installing virtualization packages..."):
                    summary.provisioning = provision_host(self.settings.provision_packages)
            return summary

        if options.scope.is_single:
            targets = [options.scope.machine]
        else:
            targets = list(self.settings.machines)

        operation = self.backup_vm if options.mode is RunMode.BACKUP else self.restore_vm

        with LogOperation(self.logger, f"{options.mode.value}_run",
                          vm_count=len(targets), single=options.scope.is_single):
            with self.vm_manager:
                for vm_name in targets:
                    vm_result = await operation(vm_name)
                    summary.vm_results.append(vm_result)
                    summary.processed.append(vm_name)
                    for failure in vm_result.failures:
                        self.logger.warning("Step failed, continuing", vm_name=vm_name,
                                            command=failure.command, error=failure.stderr)

        if not options.scope.is_single:
            self.run_log.record_completion(options.mode.action_name, summary.processed)
            summary.completion_logged = True

        return summary

    def vm_files(self, vm_name: str) -> VMFiles:
        return VMFiles(
            name=vm_name,
            source_dir=Path(self.settings.source_path),
            destination_dir=Path(self.settings.destination_path),
        )

    async def backup_vm(self, vm_name: str) -> VMOperationResult:
        """Export the definition, then compress the disk image into the destination"""
        files = self.vm_files(vm_name)
        result = VMOperationResult(vm_name=vm_name, mode=RunMode.BACKUP)

        with LogOperation(self.logger, "backup_vm", vm_name=vm_name):
            result.steps.append(self.vm_manager.export_vm_definition(vm_name, files.definition))

            self.console.print(f"[cyan]Backup of {escape(vm_name)} in progress...[/cyan]")
            result.steps.append(await compress_file(
                files.image, files.archive,
                level=self.settings.compression_level,
                compressor=self.settings.compressor,
                chunk_size=self.settings.chunk_size,
                console=self.console,
            ))

        return result

    async def restore_vm(self, vm_name: str) -> VMOperationResult:
        """Decompress the image into the source directory and re-register the definition"""
        files = self.vm_files(vm_name)
        result = VMOperationResult(vm_name=vm_name, mode=RunMode.RESTORE)

        with LogOperation(self.logger, "restore_vm", vm_name=vm_name):
            self.console.print(f"[cyan]Restoration of {escape(vm_name)} in progress...[/cyan]")
            result.steps.append(await decompress_file(
                files.archive, files.image,
                compressor=self.settings.compressor,
                chunk_size=self.settings.chunk_size,
                console=self.console,
            ))

            # Source to destination, even when the backup copy already exists
            result.steps.append(self._copy_definition(files.source_definition, files.definition))

            result.steps.append(self.vm_manager.define_vm(files.definition))

        return result

    def _copy_definition(self, src: Path, dest: Path) -> CommandResult:
        command = f"cp {src} {dest}"
        try:
            shutil.copyfile(src, dest)
        except OSError as e:
            self.logger.warning("Definition copy failed", src=str(src), dest=str(dest), error=str(e))
            return CommandResult.failed(command, str(e))
        return CommandResult.ok(command)
