"""
Configuration settings for the VM backup tool
"""
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Dict, Optional, Tuple
import os

ENV_PREFIX = "VMBACKUP_"


def load_env_file(env_file: Optional[Path] = None) -> None:
    """Load KEY=VALUE lines from a .env file without overriding the environment"""
    env_file = env_file or Path(__file__).parent / '.env'
    if not env_file.exists():
        return
    with open(env_file, 'r', encoding='utf-8') as f:
        for line in f:
            line = line.strip()
            if line and not line.startswith('#') and '=' in line:
                key, value = line.split('=', 1)
                os.environ.setdefault(key.strip(), value.strip())


def _split_list(value: str) -> Tuple[str, ...]:
    return tuple(item.strip() for item in value.split(',') if item.strip())


@dataclass(frozen=True)
class BackupSettings:
    """Main configuration, built once per run"""

    # Directories
    destination_path: str = "/mnt/backup/kvm"
    source_path: str = "/var/lib/libvirt/images"
    log_file_name: str = "kvm-backup.log"

    # Machines, processed in this order
    machines: Tuple[str, ...] = ()

    # Hypervisor
    libvirt_uri: str = "qemu:///system"

    # Compression
    compressor: str = "gzip"
    compression_level: int = 6
    chunk_size: int = 1024 * 1024

    # Fresh install provisioning
    provision_packages: Tuple[str, ...] = (
        "qemu-kvm",
        "libvirt-daemon-system",
        "libvirt-clients",
        "virtinst",
        "bridge-utils",
    )

    # Logging settings
    log_level: str = "INFO"
    log_format: str = "text"
    log_dir: str = "/var/log/vmbackup"
    log_file_max_size: int = 10485760  # 10MB

    def __post_init__(self):
        if not 1 <= self.compression_level <= 9:
            raise ValueError(f"compression_level must be between 1 and 9, got {self.compression_level}")
        if self.chunk_size <= 0:
            raise ValueError("chunk_size must be positive")

    @classmethod
    def from_env(cls, **overrides) -> 'BackupSettings':
        """Build settings from VMBACKUP_* environment variables; keyword overrides win"""
        values = {}
        for f in fields(cls):
            env_name = f"{ENV_PREFIX}{f.name.upper()}"
            env_value = os.getenv(env_name)
            if env_value is None:
                continue
            if f.type == int:
                try:
                    values[f.name] = int(env_value)
                except ValueError:
                    raise ValueError(f"{env_name} must be an integer, got {env_value!r}") from None
            elif f.type == bool:
                values[f.name] = env_value.lower() in ('true', '1', 'yes')
            elif f.type == Tuple[str, ...]:
                values[f.name] = _split_list(env_value)
            else:
                values[f.name] = env_value
        values.update(overrides)
        return cls(**values)

    @property
    def log_file(self) -> Path:
        return Path(self.destination_path) / self.log_file_name

    def describe(self) -> Dict[str, str]:
        """Human-readable view used by the CLI"""
        return {
            "Destination": self.destination_path,
            "Source": self.source_path,
            "Machines": ", ".join(self.machines) or "(none)",
            "Run log": str(self.log_file),
            "Libvirt URI": self.libvirt_uri,
        }


def load_settings(env_file: Optional[Path] = None, **overrides) -> BackupSettings:
    """Defaults, then the .env file, then the environment, then explicit overrides"""
    load_env_file(env_file)
    return BackupSettings.from_env(**overrides)
