#!/usr/bin/env python3
"""
Account Ledger Entry Point

Starts the FastAPI server with the account ledger.
"""

import sys
from pathlib import Path

# Add the project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from account_ledger.api import run_server
from account_ledger.config import get_config


if __name__ == "__main__":
    config = get_config()
    print("Starting Account Ledger...")
    print(f"API available at: http://localhost:{config.api_port}")
    print(f"Documentation at: http://localhost:{config.api_port}/docs")

    try:
        run_server(host=config.api_host, port=config.api_port)
    except KeyboardInterrupt:
        print("\nShutting down Account Ledger...")
