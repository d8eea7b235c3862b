#!/usr/bin/env python3
"""
Lending Ledger Entry Point

Starts the FastAPI server with the host, port and storage backend taken from
LEDGER_* environment variables.
"""

import sys

from lending_ledger.api import run_server
from lending_ledger.config import get_config


if __name__ == "__main__":
    config = get_config()
    print("Starting Lending Ledger...")
    print(f"Storage backend: {config.storage_backend}")
    print(f"API available at: http://localhost:{config.api_port}")
    print(f"Documentation at: http://localhost:{config.api_port}/docs")
    print()

    try:
        run_server()
    except KeyboardInterrupt:
        print("\nShutting down Lending Ledger...")
    except Exception as e:
        print(f"Error starting server: {e}")
        sys.exit(1)
