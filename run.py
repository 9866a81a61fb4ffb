#!/usr/bin/env python3
"""
KrishiBondhu Entry Point

Starts the FastAPI server with the loan tracker and the due-reminder poller.
"""

import sys
from pathlib import Path

# Add the project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from krishibondhu.api import run_server
from krishibondhu.config import get_config


if __name__ == "__main__":
    config = get_config()
    print("🌾 Starting KrishiBondhu loan tracker...")
    print(f"💾 Storage: {config.database_path if config.use_sqlite else 'in-memory'}")
    print(f"🔔 Reminder check every {config.reminder_poll_interval_seconds:g}s")
    print(f"🌐 API available at: http://localhost:{config.api_port}")
    print(f"📚 Documentation at: http://localhost:{config.api_port}/docs")
    print()

    try:
        run_server(debug=False)
    except KeyboardInterrupt:
        print("\n👋 Shutting down KrishiBondhu...")
    except Exception as e:
        print(f"❌ Error starting server: {e}")
        sys.exit(1)
