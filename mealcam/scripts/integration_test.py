"""
Integration test script — hits all endpoints of a running server and verifies responses.

Usage (mock adapters, no camera or Supabase needed):
    CAMERA_ADAPTER=mock BACKEND_ADAPTER=mock python mealcam/scripts/serve.py   (terminal 1)
    python mealcam/scripts/integration_test.py                                  (terminal 2)
"""

import sys
import time
import cv2
import httpx
import numpy as np

BASE = "http://localhost:8000"
TIMEOUT = 60.0
DESKTOP_UA = "Mozilla/5.0 (Macintosh; Intel Mac OS X 14_0) AppleWebKit/605.1.15"
MOBILE_UA = "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) Mobile/15E148"
passed = 0
failed = 0


def _jpeg_bytes() -> bytes:
    frame = np.full((120, 160, 3), 200, dtype=np.uint8)
    ok, buf = cv2.imencode(".jpg", frame)
    return bytes(buf)


def test(name: str, method: str, path: str, checks: dict | None = None, **kwargs) -> dict | None:
    global passed, failed
    url = f"{BASE}{path}"
    checks = checks or {}
    try:
        if method == "GET":
            r = httpx.get(url, timeout=TIMEOUT, **kwargs)
        else:
            r = httpx.post(url, timeout=TIMEOUT, **kwargs)

        if r.status_code != 200:
            print(f"  FAIL  {name} — HTTP {r.status_code}")
            failed += 1
            return None

        data = r.json()
        for key, expected in checks.items():
            actual = data.get(key)
            if actual != expected:
                print(f"  FAIL  {name} — {key}: expected {expected!r}, got {actual!r}")
                failed += 1
                return data

        print(f"  OK    {name}")
        passed += 1
        return data

    except httpx.ConnectError:
        print(f"  FAIL  {name} — connection refused (is the server running?)")
        failed += 1
    except Exception as e:
        print(f"  FAIL  {name} — {type(e).__name__}: {e}")
        failed += 1
    return None


def main():
    print(f"\nIntegration tests against {BASE}\n")
    print("--- Health & Status ---")
    test("GET /health", "GET", "/health", {"api": True})
    test("GET /status", "GET", "/status", {"state": "idle"})

    print("\n--- Upload ---")
    test("POST /upload (jpeg)", "POST", "/upload", {"ok": True, "state": "idle"},
         files={"file": ("meal.jpg", _jpeg_bytes(), "image/jpeg")})
    test("POST /upload (pdf rejected)", "POST", "/upload",
         {"ok": False, "error_code": "ERR_INVALID_INPUT"},
         files={"file": ("menu.pdf", b"%PDF-1.4", "application/pdf")})

    print("\n--- Camera ---")
    test("POST /take_photo (mobile)", "POST", "/take_photo", {"ok": True, "mode": "picker"},
         headers={"User-Agent": MOBILE_UA})
    test("POST /take_photo (desktop)", "POST", "/take_photo",
         {"ok": True, "mode": "camera", "state": "camera_preview"},
         headers={"User-Agent": DESKTOP_UA})
    test("POST /camera/playing", "POST", "/camera/playing", {"ok": True})
    time.sleep(0.2)
    test("POST /camera/capture", "POST", "/camera/capture", {"ok": True, "state": "idle"})

    test("POST /take_photo (again)", "POST", "/take_photo", {"ok": True},
         headers={"User-Agent": DESKTOP_UA})
    test("POST /camera/cancel", "POST", "/camera/cancel", {"ok": True, "state": "idle"})
    test("POST /camera/cancel (twice)", "POST", "/camera/cancel", {"ok": True, "state": "idle"})
    test("POST /camera/capture (no camera)", "POST", "/camera/capture",
         {"ok": False, "error_code": "ERR_INVALID_INPUT"})

    print("\n--- Preview ---")
    test("POST /preview/clear", "POST", "/preview/clear", {"ok": True, "state": "idle"})

    print("\n--- Final Status ---")
    data = test("GET /status (final)", "GET", "/status", {"state": "idle"})
    if data and data.get("last_result"):
        print(f"        last_result: {data['last_result']}")

    # Summary
    total = passed + failed
    print(f"\n{'='*40}")
    print(f"  {passed}/{total} passed, {failed} failed")
    print(f"{'='*40}\n")

    sys.exit(1 if failed else 0)


if __name__ == "__main__":
    main()
