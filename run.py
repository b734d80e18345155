#!/usr/bin/env python3
"""
Budget Tracker Entry Point

Starts the FastAPI server with settings from BUDGET_* environment variables
(or .env).
"""

import sys
from pathlib import Path

# Add the project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from budget_tracker.api import run_server
from budget_tracker.config import get_config
from budget_tracker.logging_config import setup_logging


if __name__ == "__main__":
    config = get_config()
    setup_logging(config.log_level, log_format=config.log_format, log_file=config.log_file)

    print("💰 Starting Budget Tracker...")
    print(f"🗄️  Storage: {config.storage_backend} ({config.database_path})")
    print(f"🌐 API available at: http://{config.api_host}:{config.api_port}")
    print(f"📚 Documentation at: http://{config.api_host}:{config.api_port}/docs")
    print()

    try:
        run_server(debug=False)
    except KeyboardInterrupt:
        print("\n👋 Shutting down Budget Tracker...")
    except Exception as e:
        print(f"❌ Error starting server: {e}")
        sys.exit(1)
