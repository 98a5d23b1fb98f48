#!/usr/bin/env python3
import argparse
import json
import os
import time
from typing import Any, Dict, List, Optional, Tuple

import httpx


def request_json(
    client: httpx.Client,
    method: str,
    path: str,
    *,
    json_body: Optional[Dict[str, Any]] = None,
    timeout: float = 30.0,
) -> Tuple[int, Any]:
    try:
        resp = client.request(method, path, json=json_body, timeout=timeout)
        try:
            payload = resp.json()
        except ValueError:
            payload = resp.text
        return resp.status_code, payload
    except httpx.HTTPError as exc:
        return 0, {"error": str(exc)}


def record(results: List[Dict[str, Any]], name: str, status: int, payload: Any, expected: int) -> None:
    results.append({"name": name, "ok": status == expected, "status": status, "payload": payload})


def wait_for_job(client: httpx.Client, job_id: str, *, every: float, deadline: float) -> Tuple[int, Any]:
    status, payload = 0, None
    while time.monotonic() < deadline:
        status, payload = request_json(client, "GET", f"/status/{job_id}")
        if not isinstance(payload, dict) or payload.get("status") != "PENDING":
            break
        time.sleep(every)
    return status, payload


def main() -> int:
    parser = argparse.ArgumentParser(description="E2E checks for the image job proxy")
    parser.add_argument("--base-url", default=os.getenv("BASE_URL", "http://127.0.0.1:3000"))
    parser.add_argument("--prompt", help="Submit a real generation job (spends provider credits).")
    parser.add_argument("--poll-every", type=float, default=5.0)
    parser.add_argument("--max-wait", type=float, default=300.0)
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args()

    results: List[Dict[str, Any]] = []

    with httpx.Client(base_url=args.base_url) as client:
        status, payload = request_json(client, "GET", "/health")
        record(results, "GET /health", status, payload, 200)

        status, payload = request_json(client, "POST", "/generate-image", json_body={})
        record(results, "POST /generate-image (no prompt)", status, payload, 400)

        status, payload = request_json(client, "GET", "/status/e2e-unknown-job")
        record(results, "GET /status (unknown)", status, payload, 404)

        if args.prompt:
            status, payload = request_json(
                client, "POST", "/generate-image", json_body={"prompt": args.prompt}, timeout=120
            )
            record(results, "POST /generate-image", status, payload, 202)
            job_id = payload.get("job_id") if isinstance(payload, dict) else None
            if job_id:
                status, payload = wait_for_job(
                    client, job_id, every=args.poll_every, deadline=time.monotonic() + args.max_wait
                )
                done = isinstance(payload, dict) and payload.get("status") == "COMPLETED"
                record(results, "GET /status (final)", status if done else -1, payload, 200)

    # summary
    total = len(results)
    failed = [r for r in results if not r["ok"]]
    print(json.dumps({"total": total, "failed": len(failed)}, indent=2))
    if args.verbose or failed:
        for r in results:
            if args.verbose or not r["ok"]:
                print(f"{r['name']} -> {r['status']}")
                print(r["payload"])
                print("---")
    return 1 if failed else 0


if __name__ == "__main__":
    raise SystemExit(main())
