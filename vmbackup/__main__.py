#!/usr/bin/env python3
"""
Main entry point: python -m vmbackup
"""
from .cli import cli_entry

if __name__ == "__main__":
    cli_entry()
