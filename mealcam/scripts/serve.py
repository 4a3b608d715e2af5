"""
Dev server for the mealcam API.

Usage:
    python mealcam/scripts/serve.py
    CAMERA_ADAPTER=mock BACKEND_ADAPTER=mock python mealcam/scripts/serve.py
"""
import logging
import os
import sys
from pathlib import Path

import uvicorn

ROOT = Path(__file__).parents[2]
sys.path.insert(0, str(ROOT))


def main():
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"), format="%(asctime)s %(name)s %(message)s")
    port = int(os.getenv("PORT", "8000"))
    print(f"mealcam API starting on http://localhost:{port}")
    uvicorn.run("mealcam.services.api:app", host="0.0.0.0", port=port)


if __name__ == "__main__":
    main()
