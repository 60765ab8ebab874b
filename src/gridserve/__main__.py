"""Main entry point for the gridserve CLI.

Usage:
    python -m gridserve --help
    gridserve --help  # If installed via pip/uv
"""

from gridserve.cli import main

if __name__ == "__main__":
    main()
