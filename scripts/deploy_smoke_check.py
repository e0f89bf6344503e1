"""Post-deploy smoke checks executed from the app container."""

from __future__ import annotations

import json
import urllib.error
import urllib.request
from datetime import UTC, datetime, timedelta
from uuid import uuid4

BASE_URL = "http://localhost:8000"


def request(
    path: str,
    *,
    method: str = "GET",
    body: dict | None = None,
    headers: dict[str, str] | None = None,
    expected: int = 200,
) -> bytes:
    payload = None
    req_headers = {"Accept": "application/json"}
    if headers:
        req_headers.update(headers)
    if body is not None:
        payload = json.dumps(body).encode("utf-8")
        req_headers["Content-Type"] = "application/json"

    request_obj = urllib.request.Request(
        f"{BASE_URL}{path}",
        data=payload,
        method=method,
        headers=req_headers,
    )
    try:
        with urllib.request.urlopen(request_obj, timeout=30) as response:
            content = response.read()
            status = response.getcode()
    except urllib.error.HTTPError as exc:  # pragma: no cover - runtime smoke script
        if exc.code == expected:
            return exc.read()
        body_text = exc.read().decode("utf-8", errors="ignore")
        raise RuntimeError(f"{method} {path} -> {exc.code}: {body_text}") from exc

    if status != expected:
        raise RuntimeError(f"{method} {path} -> {status}, expected {expected}")
    return content


def main() -> None:
    for endpoint in ["/health", "/ready", "/docs", "/metrics"]:
        request(endpoint, expected=200)

    # A fresh professional has no profile yet, so availability falls back to defaults.
    professional_id = uuid4()
    start = datetime.now(UTC).date() + timedelta(days=1)
    end = start + timedelta(days=6)
    availability = json.loads(
        request(
            f"/api/v1/professionals/{professional_id}/availability?start_date={start}&end_date={end}",
        ).decode("utf-8")
    )
    if len(availability["days"]) != 7:
        raise RuntimeError(f"Expected 7 availability days, got {len(availability['days'])}")

    # Unsigned webhook deliveries must be rejected.
    request("/api/v1/webhooks/stripe", method="POST", body={"id": "evt_smoke"}, expected=400)

    print("Smoke checks passed.")


if __name__ == "__main__":
    main()
