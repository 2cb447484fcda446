#!/usr/bin/env python
"""Запуск сервера."""
import os

import uvicorn

from utils import load_env, setup_logging

if __name__ == "__main__":
    load_env()  # .env читается до импорта api: DATABASE_URL, MAX_BARS, DEFAULT_KERF
    setup_logging()
    from api import app

    PORT = int(os.getenv("PORT", "3000"))
    print("=" * 60)
    print("BarCut Server")
    print("=" * 60)
    print(f"Open: http://localhost:{PORT}")
    print("=" * 60)
    uvicorn.run(app, host="127.0.0.1", port=PORT, reload=False)
