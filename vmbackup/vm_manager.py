"""
Libvirt access: export and define domain definitions
"""
from pathlib import Path
from typing import Optional

import libvirt

from .models import CommandResult
from .logging_config import get_logger


class LibvirtManager:
    """Thin wrapper over a libvirt connection"""

    def __init__(self, uri: str = "qemu:///system"):
        self.uri = uri
        self.conn: Optional[libvirt.virConnect] = None
        self.logger = get_logger("vmbackup.vm_manager")

    def connect(self) -> bool:
        """Connect to the libvirt daemon, reusing a live connection"""
        try:
            if self.conn is None or not self.conn.isAlive():
                self.conn = libvirt.open(self.uri)
                self.logger.info("Connected to libvirt", uri=self.uri)
            return True
        except libvirt.libvirtError as e:
            self.conn = None
            self.logger.error("Failed to connect to libvirt", uri=self.uri, error=str(e))
            return False

    def disconnect(self) -> None:
        if self.conn is not None:
            self.conn.close()
            self.conn = None
            self.logger.info("Disconnected from libvirt")

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.disconnect()

    def export_vm_definition(self, vm_name: str, output_path: Path) -> CommandResult:
        """Write the domain XML of ``vm_name`` to ``output_path``, replacing any existing file"""
        command = f"dumpxml {vm_name} > {output_path}"
        if not self.connect():
            return CommandResult.failed(command, f"cannot connect to {self.uri}")

        try:
            domain = self.conn.lookupByName(vm_name)
            xml_desc = domain.XMLDesc()
            with open(output_path, 'w', encoding='utf-8') as f:
                f.write(xml_desc)
        except (libvirt.libvirtError, OSError) as e:
            self.logger.error("Failed to export VM definition",
                              vm_name=vm_name, output_path=str(output_path), error=str(e))
            return CommandResult.failed(command, str(e))

        self.logger.info("VM definition exported", vm_name=vm_name, output_path=str(output_path))
        return CommandResult.ok(command)

    def define_vm(self, xml_path: Path) -> CommandResult:
        """Register (or update) a persistent domain from an XML file"""
        command = f"define {xml_path}"
        if not self.connect():
            return CommandResult.failed(command, f"cannot connect to {self.uri}")

        try:
            xml_desc = Path(xml_path).read_text(encoding='utf-8')
            domain = self.conn.defineXML(xml_desc)
        except (libvirt.libvirtError, OSError) as e:
            self.logger.error("Failed to define VM", xml_path=str(xml_path), error=str(e))
            return CommandResult.failed(command, str(e))

        self.logger.info("VM defined", vm_name=domain.name(), xml_path=str(xml_path))
        return CommandResult.ok(command)
