#!/usr/bin/env python
"""
Persistent backend runner for Meterline.
Keeps uvicorn running even if it crashes.
"""
import subprocess
import time
import sys

from meterline.core.config import settings


def main() -> None:
    port = str(settings.PORT)
    while True:
        print(f"\n[INFO] Starting backend server on port {port}...")
        try:
            subprocess.run([sys.executable, "-m", "uvicorn", "meterline.main:app", "--port", port], check=False)
        except KeyboardInterrupt:
            print("\n[INFO] Shutting down backend...")
            break
        except OSError as e:
            print(f"[ERROR] {e}")

        print("[INFO] Backend stopped, will restart in 2 seconds...")
        time.sleep(2)


if __name__ == "__main__":
    main()
