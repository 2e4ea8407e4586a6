#!/usr/bin/env python3
"""Diagnostic script to test MemOS connectivity and the plugin's read/write paths.

Run next to the host to isolate memory issues from the agent:

    python scripts/memos_check.py
"""

import asyncio
import sys

from memos_lifecycle.client import MemosClient, TransportError
from memos_lifecycle.config import Settings, configure_logging
from memos_lifecycle.health import HealthProbe
from memos_lifecycle.llm import build_completer
from memos_lifecycle.retrieval import pre_retrieval_decision
from memos_lifecycle.state import PluginState
from memos_lifecycle.store import MemoryStore
from memos_lifecycle.tasks import TaskManager


def banner(msg: str) -> None:
    print(f"\n{'=' * 60}")
    print(f"  {msg}")
    print(f"{'=' * 60}")


async def main() -> None:
    settings = Settings()
    configure_logging(settings)
    banner("MemOS Diagnostic")

    print(f"\nMEMOS_API_URL: {settings.memos_api_url}")
    print(f"MEMOS_USER_ID: {settings.memos_user_id}")
    print(f"MEMOS_CUBE_ID: {settings.memos_cube_id}")
    print(f"INTERNAL_SERVICE_SECRET set: {bool(settings.internal_service_secret)}")
    print(f"LLM backend: {settings.llm_backend}")

    client = MemosClient(settings)
    state = PluginState()
    store = MemoryStore(client, stats=state.stats)

    banner("Step 1: Health probe")
    if not await HealthProbe(client).is_healthy():
        print("FAIL: MemOS did not answer HEAD /openapi.json")
        await client.aclose()
        sys.exit(1)
    print("OK: MemOS is reachable")

    banner("Step 2: Search (read)")
    query = "what did we decide about the deployment last time?"
    print(f"Decision for {query!r}: {pre_retrieval_decision(query)}")
    try:
        result = await store.search(query, 5)
        print(
            f"OK: {len(result.text)} text, {len(result.skills)} skill, "
            f"{len(result.preferences)} preference memories"
        )
        for item in result.text[:3]:
            print(f"    - {item.content[:80]}")
    except TransportError as exc:
        print(f"FAIL: Search failed: {exc}")
        if exc.body:
            print(f"    Response body: {exc.body}")

    banner("Step 3: Add memory (write)")
    try:
        await store.add(
            "Diagnostic test memory, safe to delete",
            ["diagnostic"],
            {"_type": "diagnostic", "source": "memos_check"},
        )
        print("OK: Add confirmed")
    except TransportError as exc:
        print(f"FAIL: Add failed: {exc}")
        if exc.body:
            print(f"    Response body: {exc.body}")

    banner("Step 4: Completion backend")
    try:
        answer = await build_completer(settings, client).complete(
            'Return the JSON array ["ok"] and nothing else.', max_tokens=20, temperature=0
        )
        print(f"OK: {answer[:80]!r}")
    except Exception as exc:
        print(f"FAIL: Completion failed: {type(exc).__name__}: {exc}")

    banner("Step 5: Task listing")
    tasks = await TaskManager(store, state.dedup).find_tasks(status="pending")
    print(f"OK: {len(tasks)} pending tasks")
    for task in tasks[:5]:
        print(f"    - [{task.priority}] {task.title} ({task.task_id})")

    banner("Stats")
    print(state.stats.format())

    await client.aclose()


if __name__ == "__main__":
    asyncio.run(main())
