#!/usr/bin/env python3
# backend/run.py
"""
Local development server.

Creates the schema on the configured DATABASE_URL, then serves the API with
autoreload. Without STRIPE_SECRET_KEY the in-memory payment gateway is used.
"""
from pathlib import Path
import sys

backend_dir = Path(__file__).parent
sys.path.insert(0, str(backend_dir))

import uvicorn

from coachwire.init_db import init_db

if __name__ == "__main__":
    init_db()
    uvicorn.run("coachwire.main:app", host="0.0.0.0", port=8000, reload=True, log_level="info")
