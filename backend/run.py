#!/usr/bin/env python3
# backend/run.py
"""
Development server runner.

Local SQLite databases get their tables created on startup; point
DATABASE_URL at PostgreSQL and run ``alembic upgrade head`` otherwise.
"""
import os
from pathlib import Path
import sys

backend_dir = Path(__file__).parent
sys.path.insert(0, str(backend_dir))
os.chdir(backend_dir)

import uvicorn  # noqa: E402

if __name__ == "__main__":
    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", "8000"))
    print(f"Starting FitStudio booking API at http://localhost:{port} (docs at /docs)")
    uvicorn.run("fitstudio.main:app", host=host, port=port, reload=True, log_level="info")
