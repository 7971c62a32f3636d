"""
Command-line interface for the VM backup tool
"""
import asyncio
import sys
from typing import List, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from .backup_manager import BackupManager
from .config import BackupSettings, load_settings
from .host import is_root
from .models import ExitCode, RunMode, RunOptions, RunScope, RunSummary, VMBackupError
from .run_log import RunLog
from .logging_config import setup_logging, get_logger

app = typer.Typer(help="Back up and restore KVM virtual machines", add_completion=False)
console = Console(stderr=True)

USAGE = "Usage: vmbackup [-b | -r [-f]] [-o NAME]"


def _usage_error_types():
    """UsageError and BadOptionUsage from the click that typer parses with

    Newer typer releases bundle their own copy of click, so the classes are
    looked up from typer's exceptions rather than imported from click.
    """
    usage_error = next(cls for cls in typer.BadParameter.__mro__ if cls.__name__ == "UsageError")
    bad_option_usage = getattr(sys.modules[usage_error.__module__], "BadOptionUsage")
    return usage_error, bad_option_usage


UsageError, BadOptionUsage = _usage_error_types()


def init_logging(settings: BackupSettings) -> None:
    setup_logging(
        console=console,
        log_level=settings.log_level,
        log_format=settings.log_format,
        log_dir=settings.log_dir,
        log_file_max_size=settings.log_file_max_size,
    )


def parse_options(backup: bool, restore: bool, fresh_install: bool,
                  only: Optional[str]) -> RunOptions:
    """Validate the flag combination; raises VMBackupError with the matching exit code"""
    if only is not None and (not only.strip() or only.startswith("-")):
        raise VMBackupError(ExitCode.MISSING_NAME, "Option -o requires a machine name")
    if backup and restore:
        raise VMBackupError(ExitCode.CONFLICTING_ACTIONS,
                            "Options -b and -r are mutually exclusive")
    if not backup and not restore:
        if only is not None:
            raise VMBackupError(ExitCode.NAME_WITHOUT_ACTION,
                                f"Machine '{only}' given without -b or -r")
        raise VMBackupError(ExitCode.NO_ACTION, "One of -b or -r is required")

    return RunOptions(
        mode=RunMode.BACKUP if backup else RunMode.RESTORE,
        scope=RunScope(machine=only),
        fresh_install=fresh_install,
    )


def _show_plan(settings: BackupSettings, options: RunOptions) -> None:
    lines = [f"[bold]Action:[/bold] {options.mode.action_name}"]
    if options.fresh_install and options.mode is RunMode.RESTORE:
        lines.append("[bold]Fresh install:[/bold] provisioning only")
    else:
        lines.append(f"[bold]Scope:[/bold] {escape(options.scope.machine or 'all configured machines')}")
    lines.extend(f"[bold]{key}:[/bold] {escape(value)}" for key, value in settings.describe().items())
    console.print(Panel("\n".join(lines), title="VM Backup", border_style="blue"))


def _show_summary(summary: RunSummary) -> None:
    if summary.provisioning:
        table = Table(title="Host Provisioning")
        table.add_column("Command", style="cyan")
        table.add_column("Status")
        for step in summary.provisioning:
            status = "[green]ok[/green]" if step.success else f"[red]failed ({step.returncode})[/red]"
            table.add_row(escape(step.command), status)
        console.print(table)
        return

    if not summary.vm_results:
        console.print("[yellow]No machines processed[/yellow]")
        return

    table = Table(title=f"{summary.options.mode.action_name} Results")
    table.add_column("Machine", style="cyan")
    table.add_column("Status")
    table.add_column("Failed steps", style="red")
    for vm_result in summary.vm_results:
        status = "[green]ok[/green]" if vm_result.success else "[red]failed[/red]"
        failed = "\n".join(escape(step.command) for step in vm_result.failures)
        table.add_row(escape(vm_result.vm_name), status, failed)
    console.print(table)


@app.command()
def run(
    backup: bool = typer.Option(False, "-b", help="Back up the machines"),
    restore: bool = typer.Option(False, "-r", help="Restore the machines"),
    fresh_install: bool = typer.Option(False, "-f", help="With -r: provision a freshly installed host instead"),
    only: Optional[str] = typer.Option(None, "-o", metavar="NAME", help="Only act on this machine"),
):
    """Back up (-b) or restore (-r) the configured virtual machines"""
    logger = None
    try:
        options = parse_options(backup, restore, fresh_install, only)

        try:
            settings = load_settings()
        except ValueError as e:
            raise VMBackupError(ExitCode.CONFIG_INVALID, f"Invalid configuration: {e}")
        init_logging(settings)
        logger = get_logger("vmbackup.cli")

        if fresh_install and options.mode is RunMode.BACKUP:
            logger.warning("Option -f only applies to -r, ignoring it")

        if not is_root():
            raise VMBackupError(ExitCode.NOT_ROOT, "This tool must be run as root")

        run_log = RunLog(settings)
        run_log.ensure_log()

        _show_plan(settings, options)
        manager = BackupManager(settings, run_log, console=console)
        summary = asyncio.run(manager.execute(options))
        _show_summary(summary)

        logger.info("Run finished", mode=options.mode.value,
                    processed=",".join(summary.processed),
                    failed=",".join(summary.failed_vms),
                    completion_logged=summary.completion_logged)

    except VMBackupError as e:
        console.print(f"[red]{escape(e.message)}[/red]")
        if logger is not None:
            logger.error("Run aborted", exit_code=int(e.exit_code), error=e.message)
        raise typer.Exit(int(e.exit_code))


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point returning the process exit code"""
    args = sys.argv[1:] if argv is None else list(argv)
    if not args:
        console.print("[red]No options supplied[/red]")
        console.print(USAGE, markup=False)
        return ExitCode.NO_OPTIONS

    command = typer.main.get_command(app)
    try:
        rv = command.main(args=args, prog_name="vmbackup", standalone_mode=False)
    except BadOptionUsage as e:
        console.print(f"[red]{escape(e.format_message())}[/red]")
        console.print(USAGE, markup=False)
        if e.option_name == "-o":
            return ExitCode.MISSING_NAME
        return ExitCode.INVALID_OPTION
    except UsageError as e:
        console.print(f"[red]Invalid option: {escape(e.format_message())}[/red]")
        console.print(USAGE, markup=False)
        return ExitCode.INVALID_OPTION

    return rv if isinstance(rv, int) else ExitCode.OK


def cli_entry() -> None:
    sys.exit(int(main()))
