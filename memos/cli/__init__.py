"""
CLI Module.

Command-line front end built with Typer and Rich.

Architecture:
- CLI is a thin presentation layer
- All behaviour lives in MemoApplication
- Each command opens the application, runs one operation and saves on exit

Usage:
    python cli.py --help
    python cli.py notes new --title "Groceries"
    python cli.py notes list --folder favorites --query milk
    python cli.py --user-id u1 --email me@example.com --online sync now
    python cli.py reminders watch
"""
