"""
Run the OrderTaker bakery CLI.

Usage:
    python run_cli.py [COMMAND] [OPTIONS]

Commands:
    register        Create a new account
    login           Sign in and save credentials locally (~/.ordertaker/session.json)
    logout          Clear stored credentials
    whoami          Show the currently signed-in account
    orders          list / add / edit / complete / reopen / delete
    menu            list / add / edit / delete
    export          Write orders or menu as tab-separated text
    import          Load orders or menu from a .tsv/.csv file
    summary         Items to bake for a pickup date
    report          Sales report

Examples:
    python run_cli.py login
    python run_cli.py orders list --view pending
    python run_cli.py import orders ~/Downloads/orders.tsv

Environment variables (all optional):
    DB_PATH                     SQLite database file path (default: data/ordertaker.db)
    EXPORT_DIR                  Directory for exported .tsv files (default: exports/)
    SYNC_POLICY                 "replace" or "preserve_pending"
    JWT_SECRET                  Secret used to sign session tokens
    FEDERATED_SECRET            Secret used to verify federated id tokens
    REQUIRE_EMAIL_VERIFICATION  Refuse sign-in for unverified accounts
    LOG_LEVEL                   DEBUG, INFO, WARNING (default), ERROR
"""

import sys
from pathlib import Path

# Ensure src/ is importable
sys.path.insert(0, str(Path(__file__).parent / "src"))

from adapters.cli.main import app

if __name__ == "__main__":
    app()
