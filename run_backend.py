#!/usr/bin/env python
"""Script to run the task manager API server."""
import os
import sys
from pathlib import Path

# Get the directory where this script is located
script_dir = Path(__file__).resolve().parent

# Add project directory to Python path
sys.path.insert(0, str(script_dir))

# Change to project directory so the default SQLite file lands here
os.chdir(script_dir)

# Now run uvicorn
import uvicorn  # noqa: E402

if __name__ == "__main__":
    uvicorn.run(
        "taskmanager.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        reload=os.getenv("RELOAD", "true").lower() == "true",
    )
