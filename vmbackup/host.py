"""
Host-level helpers: privilege check and fresh-install provisioning
"""
import os
import subprocess
from typing import List, Sequence

from .models import CommandResult
from .logging_config import get_logger

logger = get_logger("vmbackup.host")


def is_root() -> bool:
    return os.geteuid() == 0


def run_command(argv: Sequence[str]) -> CommandResult:
    """Run a command to completion; a non-zero exit is returned, not raised"""
    command = " ".join(argv)
    env = dict(os.environ, DEBIAN_FRONTEND="noninteractive")
    try:
        proc = subprocess.run(list(argv), capture_output=True, text=True, env=env)
    except OSError as e:
        logger.error("Command could not start", command=command, error=str(e))
        return CommandResult.failed(command, str(e), returncode=127)

    result = CommandResult(command=command, returncode=proc.returncode, stderr=proc.stderr.strip())
    if result.success:
        logger.info("Command completed", command=command)
    else:
        logger.error("Command failed", command=command,
                     exit_code=proc.returncode, stderr=result.stderr)
    return result


def provision_host(packages: Sequence[str]) -> List[CommandResult]:
    """Install the virtualization packages, then refresh the package index"""
    results = []
    if packages:
        results.append(run_command(["apt-get", "install", "-y", *packages]))
    else:
        logger.warning("No provisioning packages configured")
    results.append(run_command(["apt-get", "update"]))
    return results
