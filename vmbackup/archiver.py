"""
Disk image compression through a background gzip process
"""
import asyncio
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.markup import escape
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    TextColumn,
    TimeRemainingColumn,
    TransferSpeedColumn,
)

from .models import CommandResult
from .logging_config import get_logger

logger = get_logger("vmbackup.archiver")

DEFAULT_CHUNK_SIZE = 1024 * 1024


def _progress(console: Optional[Console]) -> Progress:
    return Progress(
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        DownloadColumn(),
        TransferSpeedColumn(),
        TimeRemainingColumn(),
        console=console or Console(stderr=True),
    )


async def _pipe_file(argv: List[str], src: Path, dest: Path, description: str,
                     chunk_size: int, console: Optional[Console]) -> CommandResult:
    """Feed ``src`` to the child's stdin while its stdout goes straight to ``dest``.

    The child runs in the background; the byte count fed to it drives the
    progress bar. Returns once the child has exited.
    """
    command = f"{' '.join(argv)} < {src} > {dest}"

    try:
        infile = open(src, 'rb')
    except OSError as e:
        logger.error("Cannot read input file", src=str(src), error=str(e))
        return CommandResult.failed(command, str(e))

    with infile:
        total = Path(src).stat().st_size
        try:
            outfile = open(dest, 'wb')
        except OSError as e:
            logger.error("Cannot write output file", dest=str(dest), error=str(e))
            return CommandResult.failed(command, str(e))

        with outfile:
            try:
                proc = await asyncio.create_subprocess_exec(
                    *argv,
                    stdin=asyncio.subprocess.PIPE,
                    stdout=outfile,
                    stderr=asyncio.subprocess.PIPE,
                )
            except OSError as e:
                logger.error("Cannot start compressor", command=command, error=str(e))
                return CommandResult.failed(command, str(e), returncode=127)

            logger.debug("Compressor started", command=command, pid=proc.pid)
            with _progress(console) as progress:
                task = progress.add_task(description, total=total)
                try:
                    while True:
                        chunk = infile.read(chunk_size)
                        if not chunk:
                            break
                        proc.stdin.write(chunk)
                        await proc.stdin.drain()
                        progress.advance(task, len(chunk))
                except (BrokenPipeError, ConnectionResetError) as e:
                    logger.warning("Compressor closed its input early", command=command, error=str(e))
                finally:
                    proc.stdin.close()

                stderr = await proc.stderr.read()
                returncode = await proc.wait()

    result = CommandResult(command=command, returncode=returncode,
                           stderr=stderr.decode('utf-8', errors='replace').strip())
    if result.success:
        logger.info("Compressor finished", command=command, bytes_in=total)
    else:
        logger.error("Compressor failed", command=command, returncode=returncode, stderr=result.stderr)
    return result


async def compress_file(src: Path, dest: Path, level: int = 6, compressor: str = "gzip",
                        chunk_size: int = DEFAULT_CHUNK_SIZE,
                        console: Optional[Console] = None) -> CommandResult:
    """gzip ``src`` into ``dest``, overwriting ``dest``"""
    return await _pipe_file([compressor, "-c", f"-{level}"], Path(src), Path(dest),
                            f"Compressing {escape(Path(src).name)}", chunk_size, console)


async def decompress_file(src: Path, dest: Path, compressor: str = "gzip",
                          chunk_size: int = DEFAULT_CHUNK_SIZE,
                          console: Optional[Console] = None) -> CommandResult:
    """gunzip ``src`` into ``dest``, overwriting ``dest``"""
    return await _pipe_file([compressor, "-d", "-c"], Path(src), Path(dest),
                            f"Decompressing {escape(Path(src).name)}", chunk_size, console)
