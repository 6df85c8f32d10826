"""EV Charge CLI — inspect and poke the real-time pipeline over HTTP.

Usage:
    evcharge health                      # Dependency + watcher status
    evcharge stats                       # Cached dashboard stats
    evcharge refresh-stats               # Recompute stats now (cache warm)
    evcharge watchers                    # Per-collection watcher state
    evcharge restart-watcher payments    # Reopen one collection's stream
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import json
import os
import sys

import click
import httpx

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

DEFAULT_API_URL = "http://localhost:8000"


def _api_url() -> str:
    return os.environ.get("EVCHARGE_API_URL", DEFAULT_API_URL).rstrip("/")


def _client() -> httpx.AsyncClient:
    """Build an async HTTP client pointed at the pipeline API."""
    return httpx.AsyncClient(base_url=_api_url(), timeout=30.0)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run an async coroutine from a synchronous Click handler.

    Offloads to a thread when an event loop is already running (tests).
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, coro).result()


def _pretty_json(data: dict | list) -> str:
    return json.dumps(data, indent=2, default=str)


def _print_table(rows: list[dict], columns: list[tuple[str, str, int]]):
    """Print a simple ASCII table.

    columns: list of (header, dict_key, width)
    """
    header = "  ".join(h.ljust(w) for h, _, w in columns)
    click.secho(header, bold=True)
    click.echo("-" * len(header))
    for row in rows:
        line = "  ".join(str(row.get(k, "—"))[:w].ljust(w) for _, k, w in columns)
        click.echo(line)


def _state_color(state: str) -> str:
    colors = {
        "ok": "green",
        "open": "green",
        "healthy": "green",
        "pending": "yellow",
        "degraded": "yellow",
        "unavailable": "yellow",
        "closed": "white",
        "failed": "red",
    }
    if state.startswith("error"):
        return "red"
    return colors.get(state, "white")


async def _get(path: str) -> httpx.Response:
    async with _client() as c:
        return await c.get(path)


async def _post(path: str) -> httpx.Response:
    async with _client() as c:
        return await c.post(path)


def _fail(resp: httpx.Response):
    click.secho(f"Error {resp.status_code}: {resp.text}", fg="red", err=True)
    sys.exit(1)


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version="0.1.0", prog_name="evcharge")
def main():
    """EV Charge real-time pipeline operations."""


@main.command()
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON")
def health(as_json: bool):
    """Show dependency and watcher health."""
    resp = _run(_get("/api/v1/health"))
    if resp.status_code != 200:
        _fail(resp)
    data = resp.json()
    if as_json:
        click.echo(_pretty_json(data))
        return

    click.secho(f"Status: {data['status']}", fg=_state_color(data["status"]), bold=True)
    for key in ("server", "mongodb", "redis", "watchers"):
        value = str(data.get(key, "—"))
        click.echo(f"  {key:<9}" + click.style(value, fg=_state_color(value)))


@main.command()
def stats():
    """Show the cached dashboard stats."""
    resp = _run(_get("/api/v1/dashboard/stats"))
    if resp.status_code != 200:
        _fail(resp)
    _print_table(resp.json(), [("Metric", "name", 12), ("Value", "value", 14), ("Change", "change", 8)])


@main.command("refresh-stats")
def refresh_stats():
    """Recompute the dashboard stats now."""
    resp = _run(_post("/api/v1/update-stats"))
    if resp.status_code != 200:
        _fail(resp)
    data = resp.json()
    click.secho(data["message"], fg="green")
    _print_table(data["stats"], [("Metric", "name", 12), ("Value", "value", 14)])


@main.command()
def watchers():
    """Show per-collection watcher state."""
    resp = _run(_get("/api/v1/realtime/watchers"))
    if resp.status_code != 200:
        _fail(resp)
    data = resp.json()
    broker = "available" if data["broker_available"] else "unavailable"
    click.echo(f"Broker: {broker}")
    rows = [{"collection": name, **info} for name, info in data["collections"].items()]
    header = f"{'Collection':<20}  {'State':<8}  {'Changes':<8}  Last error"
    click.secho(header, bold=True)
    click.echo("-" * len(header))
    for row in rows:
        state = click.style(f"{row['state']:<8}", fg=_state_color(row["state"]))
        click.echo(
            f"{row['collection']:<20}  {state}  {row['changes']:<8}  {row.get('last_error') or ''}"
        )


@main.command("restart-watcher")
@click.argument("name")
def restart_watcher(name: str):
    """Reopen one collection's change stream."""
    resp = _run(_post(f"/api/v1/realtime/watchers/{name}/restart"))
    if resp.status_code == 404:
        click.secho(f"Collection {name!r} is not watched", fg="red", err=True)
        sys.exit(1)
    if resp.status_code != 200:
        _fail(resp)
    data = resp.json()
    if data["restarted"]:
        click.secho(f"{name}: watcher reopened", fg="green")
    else:
        click.secho(f"{name}: reopen failed: {data.get('last_error')}", fg="red")
        sys.exit(1)


if __name__ == "__main__":
    main()
