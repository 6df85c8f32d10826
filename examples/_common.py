"""
Shared helpers for EV Charge examples.

Handles the health check so each example can focus on its workflow.
"""

import sys

import httpx

BASE = "http://localhost:8000/api/v1"


def check_backend() -> dict:
    """Verify the pipeline API is reachable and print dependency status."""
    try:
        resp = httpx.get(f"{BASE}/health", timeout=5)
    except httpx.ConnectError:
        print(f"ERROR: Pipeline API not reachable at {BASE}")
        print("Start it with:  uvicorn evcharge.main:app --reload --port 8000")
        sys.exit(1)

    if resp.status_code != 200:
        print(f"ERROR: Health check returned {resp.status_code}")
        sys.exit(1)

    health = resp.json()
    print("Pipeline health:")
    print(f"  MongoDB:  {'✓' if health['mongodb'] == 'ok' else '✗'}")
    print(f"  Redis:    {'✓' if health['redis'] == 'ok' else '✗ (real-time disabled)'}")
    print(f"  Watchers: {'✓' if health['watchers'] == 'ok' else '✗'}")

    if health["mongodb"] != "ok":
        print("\nERROR: MongoDB is not reachable. Change streams need a replica set:")
        print("  docker run -d -p 27017:27017 mongo:7 --replSet rs0 && mongosh --eval 'rs.initiate()'")
        sys.exit(1)
    return health


def create_client() -> httpx.Client:
    check_backend()
    return httpx.Client(base_url=BASE, timeout=10)
