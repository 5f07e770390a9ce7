#!/usr/bin/env python3
"""
Memos CLI.

Primary entry point for working with the local memo store.
Built with Typer for type-safe commands and Rich for formatted output.

Usage:
    python cli.py --help                                   # Show help

    # Notes
    python cli.py notes new --title "Groceries"            # Create a note
    python cli.py notes list --folder favorites -q milk    # List and search
    python cli.py notes edit memo-123 --content "eggs"     # Edit
    python cli.py notes delete memo-123                    # Move to trash
    python cli.py notes empty-trash -y                     # Purge the trash
    python cli.py notes remind memo-123 2024-05-01T09:30   # Set a reminder
    python cli.py notes share memo-123 --mode link         # Share by link

    # Tags
    python cli.py tags create Work
    python cli.py tags add memo-123 work

    # Reminders
    python cli.py reminders upcoming
    python cli.py reminders watch                          # Run scans and sync on schedule

    # Sync (requires a signed-in user)
    python cli.py --user-id u1 --email me@example.com sync status
    python cli.py --user-id u1 --email me@example.com --online sync now

Options:
    --user-id / --email   Signed-in identity (env: MEMOS_USER_ID, MEMOS_USER_EMAIL)
    --guest               Force a guest session (never syncs)
    --online / --offline  Network availability (default offline)
    --verbose, -v         Enable verbose output
    --debug, -d           Enable debug mode (detailed logging)
"""

import sys
from pathlib import Path

# Add project root to path for absolute imports
project_root = Path(__file__).resolve().parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from memos.cli.main import app

if __name__ == "__main__":
    app()
