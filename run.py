#!/usr/bin/env python3
"""
Core Exchange System Entry Point

Starts the FastAPI server with the exchange ledger.
"""

import sys

from core_exchange.api import run_server


if __name__ == "__main__":
    print("Starting Core Exchange System...")
    print("Documentation at: /docs")
    print()
    
    try:
        run_server()
    except KeyboardInterrupt:
        print("\nShutting down Core Exchange System...")
    except Exception as e:
        print(f"Error starting server: {e}")
        sys.exit(1)
