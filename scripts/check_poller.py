#!/usr/bin/env python3
"""
Smoke test script for the task poller.

This script runs the poller against an in-process fake task service to
validate that configuration, managers and the polling loop fit together.
"""

import asyncio
import itertools
import os
import sys

import httpx

# Add the src directory to the path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from task_poller import (
    ManagerRegistry,
    TaskFailedError,
    TaskMaxAttemptsError,
    TaskPoller,
)
from task_poller.config import get_settings
from task_poller.log_config import setup_logging


def build_fake_service() -> httpx.MockTransport:
    """Fake service: job ids ending in 'f' fail, 'h' hang, others succeed."""
    ids = itertools.count(1)
    polls: dict[str, int] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "POST":
            kind = request.url.params.get("kind", "ok")
            job_id = f"job-{next(ids)}-{kind[0]}"
            return httpx.Response(202, json={"id": job_id})

        job_id = request.url.path.rsplit("/", 1)[-1]
        polls[job_id] = polls.get(job_id, 0) + 1
        if job_id.endswith("h") or polls[job_id] < 3:
            return httpx.Response(200, json={"id": job_id, "status": "RUNNING"})
        if job_id.endswith("f"):
            return httpx.Response(200, json={"id": job_id, "status": "FAIL"})
        return httpx.Response(
            200, json={"id": job_id, "status": "SUCCESS", "output": f"{job_id}.bin"}
        )

    return httpx.MockTransport(handler)


async def run_job(poller: TaskPoller, client: httpx.AsyncClient, kind: str) -> str:
    return await poller.poll(
        lambda: client.post("/jobs", params={"kind": kind}),
        lambda data: client.get(f"/jobs/{data['taskId']}"),
        lambda result: result["output"],
    )


async def test_successful_jobs(poller: TaskPoller, client: httpx.AsyncClient) -> bool:
    """Test that several jobs complete through a shared manager."""
    print("🔧 Testing successful jobs...")

    outputs = await asyncio.gather(*(run_job(poller, client, "ok") for _ in range(3)))
    for output in outputs:
        print(f"   ✓ Job finished: {output}")
    return len(outputs) == 3


async def test_failed_job(poller: TaskPoller, client: httpx.AsyncClient) -> bool:
    """Test that a failing job surfaces TaskFailedError."""
    print("\n💥 Testing failed job...")

    try:
        await run_job(poller, client, "fail")
    except TaskFailedError as e:
        print(f"   ✓ TaskFailedError raised: {e.payload}")
        return True
    print("   ❌ Failing job did not raise")
    return False


async def test_hanging_job(poller: TaskPoller, client: httpx.AsyncClient) -> bool:
    """Test that a job that never finishes runs out of attempts."""
    print("\n⏳ Testing hanging job...")

    try:
        await run_job(poller, client, "hang")
    except TaskMaxAttemptsError as e:
        print(f"   ✓ TaskMaxAttemptsError after {e.attempts} attempts")
        return True
    print("   ❌ Hanging job did not raise")
    return False


async def main() -> int:
    """Main test function."""
    print("🚀 Starting Task Poller Smoke Tests")
    print("=" * 50)

    settings = get_settings()
    setup_logging(settings)

    registry = ManagerRegistry.from_settings(settings)
    registry.init("smoke", concurrency=2)
    poller = TaskPoller(concurrency=2, interval=50, max_attempts=5, registry=registry)
    poller.set_manager("smoke")

    tests = [test_successful_jobs, test_failed_job, test_hanging_job]
    passed = 0

    async with httpx.AsyncClient(
        transport=build_fake_service(), base_url="https://tasks.example"
    ) as client:
        for test in tests:
            try:
                if await test(poller, client):
                    passed += 1
            except Exception as e:
                print(f"   ❌ Test failed with exception: {e}")

    print("\n" + "=" * 50)
    print(f"📈 Test Results: {passed}/{len(tests)} tests passed")
    print(f"📊 Metrics: {poller.metrics.get_summary()}")

    return 0 if passed == len(tests) else 1


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
