#!/usr/bin/env python3
"""
EV Charge stats warm-up — recompute the dashboard stats and inspect capture.

Run with: python examples/stats_warmup.py

Requires: pip install httpx
Pipeline API must be running: http://localhost:8000
"""

import sys

from _common import create_client


def main():
    client = create_client()

    # ── Recompute now ─────────────────────────────────────────────
    print("\n1. Recomputing dashboard stats...")
    resp = client.post("/update-stats")
    if resp.status_code != 200:
        print(f"   Failed: {resp.status_code} {resp.text}")
        sys.exit(1)
    for metric in resp.json()["stats"]:
        print(f"   {metric['name']:<10} {metric['value']}")

    # ── Cached read ───────────────────────────────────────────────
    print("\n2. Reading the cached snapshot...")
    resp = client.get("/dashboard/stats")
    assert resp.status_code == 200, f"Failed: {resp.text}"
    print(f"   {len(resp.json())} metrics served")

    # ── Watcher state ─────────────────────────────────────────────
    print("\n3. Change stream watchers:")
    data = client.get("/realtime/watchers").json()
    for name, info in data["collections"].items():
        mark = "✓" if info["state"] == "open" else "✗"
        print(f"   {mark} {name:<18} {info['state']:<7} changes={info['changes']}")
        if info["state"] == "failed":
            print(f"     restarting... ", end="")
            r = client.post(f"/realtime/watchers/{name}/restart").json()
            print("ok" if r["restarted"] else f"still failing: {r['last_error']}")

    print(f"\nPipeline counters: {data['pipeline']}")


if __name__ == "__main__":
    main()
