#!/usr/bin/env python
"""
Fill-Line Planner - Production Server Launcher

This script starts the production server using Waitress (Windows-compatible).
For Linux/Unix servers, you can also use Gunicorn.

Usage:
    python run_production.py

Environment Variables (set in .env file):
    - SECRET_KEY: Secret key (required, generate random string)
    - HOST: Server host (default: 0.0.0.0)
    - PORT: Server port (default: 5000)
    - OUTPUT_FOLDER: Where Excel exports are written (default: outputs/)
    - PLANNER_DAY_START: Daily anchor, HH:MM in UTC (default: 06:00)
    - PLANNER_SNAP_GRID_MIN: Snap grid in minutes (default: 5)
    - PLANNER_RW_CLEAN_MIN: Default vessel cleaning minutes (default: 30)

For HTTPS:
    Use a reverse proxy (nginx, Apache, IIS) to handle SSL termination.
"""

import os
import sys

# Add backend to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), 'backend'))

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Verify required settings
if os.environ.get('SECRET_KEY', '').startswith('dev-') or not os.environ.get('SECRET_KEY'):
    print("=" * 60)
    print("WARNING: No SECRET_KEY set in environment!")
    print("Please set a random SECRET_KEY in your .env file.")
    print("Generate one with: python -c \"import secrets; print(secrets.token_hex(32))\"")
    print("=" * 60)
    sys.exit(1)

# Set production environment
os.environ['FLASK_ENV'] = 'production'
os.environ['FLASK_DEBUG'] = 'false'

# Import and run
from app import app, run_production

if __name__ == '__main__':
    run_production()
