"""Client-side status polling for submitted reports.

Terminal states are stable, so polling stops at the first `completed` or
`failed` observation. Any number of `pending`/`analyzing` observations
before that is normal.
"""
import asyncio
import time

import httpx

TERMINAL_STATUSES = ("completed", "failed")


class PollTimeoutError(Exception):
    def __init__(self, report_id: str, last_status: str | None):
        super().__init__(f"Report {report_id} not terminal before deadline (last status: {last_status})")
        self.report_id = report_id
        self.last_status = last_status


async def fetch_report(client: httpx.AsyncClient, report_id: str, headers: dict | None = None) -> dict:
    response = await client.get(f"/api/v1/reports/{report_id}", headers=headers)
    response.raise_for_status()
    return response.json()["data"]


async def poll_report(
    client: httpx.AsyncClient,
    report_id: str,
    headers: dict | None = None,
    interval: float = 2.0,
    timeout: float = 120.0,
) -> dict:
    """Poll until the report reaches a terminal state and return its payload."""
    deadline = time.monotonic() + timeout
    last_status = None
    while True:
        data = await fetch_report(client, report_id, headers)
        last_status = data["status"]
        if last_status in TERMINAL_STATUSES:
            return data
        if time.monotonic() + interval > deadline:
            raise PollTimeoutError(report_id, last_status)
        await asyncio.sleep(interval)
