#!/usr/bin/env python3
"""
Listing Desk Dashboard - development server / gunicorn entry point
"""
import os
import sys
from pathlib import Path

# Get the src directory
ROOT_DIR = Path(__file__).parent
SRC_DIR = ROOT_DIR / 'src'

# Add src directory to path
sys.path.insert(0, str(SRC_DIR))

from listing_desk.api import Config, configure_logging
from listing_desk.dashboard import create_app

configure_logging()

app = create_app(Config)


if __name__ == '__main__':
    print("=" * 50)
    print("Listing Desk Dashboard")
    print("=" * 50)

    if not Config.validate():
        print("\n⚠ Warning: SUPABASE_URL / SUPABASE_ANON_KEY not configured in .env")
        print("  The listings table and uploads stay disabled until configured")

    port = int(os.environ.get('PORT', 5000))

    print(f"\nStarting server at http://localhost:{port}")
    print("Press Ctrl+C to stop\n")

    app.run(debug=Config.DEBUG, host='0.0.0.0', port=port)
