#!/usr/bin/env python3
"""Live verification against oeis.org and a throwaway local store.

Usage:
  python scripts/verify_api.py

Steps:
  Step 1: Show effective configuration
  Step 2: Search through the client
  Step 3: Fetch one sequence and its B-file
  Step 4: Run a search through the job supervisor and app state
"""

import asyncio
import os
import sys
import tempfile

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


def step_header(n: int, title: str) -> None:
    print(f"\n{'='*60}")
    print(f"  Step {n}: {title}")
    print(f"{'='*60}\n")


def ok(msg: str) -> None:
    print(f"  ✅ {msg}")


def fail(msg: str) -> None:
    print(f"  ❌ {msg}")


def info(msg: str) -> None:
    print(f"  ℹ️  {msg}")


async def step1_show_config():
    step_header(1, "Effective Configuration")
    from oeis_tui.config import settings

    ok(f"Base URL: {settings.base_url}")
    ok(f"Request timeout: {settings.request_timeout_seconds}s")
    ok(f"Cache max age: {settings.cache_max_age_days} days")
    ok(f"Results per page: {settings.results_per_page}")
    return True


async def step2_search():
    step_header(2, "Search: 'fibonacci'")
    from oeis_tui.errors import CollaboratorError
    from oeis_tui.integrations.oeis import OEISClient
    from oeis_tui.orchestrator.schemas import SearchQuery

    client = OEISClient()
    try:
        response = await client.search(SearchQuery(query="fibonacci"), page_size=10)
    except CollaboratorError as e:
        fail(f"Search failed: {e}")
        return False

    ok(f"Got {len(response.results)} sequences (count={response.count})")
    for seq in response.results[:3]:
        print(f"    - [{seq.a_number}] {seq.name[:60]}")
    return bool(response.results)


async def step3_fetch_one():
    step_header(3, "Fetch A000045 and its B-file")
    from oeis_tui.errors import CollaboratorError
    from oeis_tui.integrations.oeis import OEISClient

    client = OEISClient()
    try:
        seq = await client.get_sequence("A000045")
        entries = await client.fetch_extended(45)
    except CollaboratorError as e:
        fail(f"Fetch failed: {e}")
        return False

    if seq is None:
        fail("A000045 not returned")
        return False
    ok(f"{seq.a_number}: {seq.name[:60]}")
    ok(f"B-file entries: {len(entries)}")
    return bool(entries)


async def step4_state_roundtrip():
    step_header(4, "Supervisor + app state round trip")
    from oeis_tui.integrations.oeis import OEISClient
    from oeis_tui.orchestrator.state import ApplicationState
    from oeis_tui.services.jobs import JobSupervisor
    from oeis_tui.services.store import LocalStore

    with tempfile.TemporaryDirectory() as tmp:
        store = LocalStore(os.path.join(tmp, "verify.db"))
        state = ApplicationState(store=store, supervisor=JobSupervisor(OEISClient()))
        state.perform_search("primes")
        info("Waiting for the search job...")

        snapshot = state.tick()
        for _ in range(600):
            if not snapshot.searching:
                break
            await asyncio.sleep(0.05)
            snapshot = state.tick()

        await state.supervisor.shutdown()
        stats = store.stats()
        store.close()

    if snapshot.error_message:
        fail(snapshot.error_message)
        return False
    ok(f"Results on screen: {len(snapshot.search_results)}")
    ok(f"Cached searches: {stats.cached_searches} | history rows: {stats.total_searches}")
    return stats.cached_searches == 1


async def main():
    print("\n🔢 oeis-tui — Live API Verification")
    print("=" * 60)

    results = {
        1: await step1_show_config(),
        2: await step2_search(),
        3: await step3_fetch_one(),
        4: await step4_state_roundtrip(),
    }

    # Summary
    print(f"\n{'='*60}")
    print("  SUMMARY")
    print(f"{'='*60}")
    for step_n, passed in sorted(results.items()):
        status = "✅ PASS" if passed else "❌ FAIL"
        print(f"  Step {step_n}: {status}")

    total_passed = sum(1 for v in results.values() if v)
    print(f"\n  {total_passed}/{len(results)} steps passed")
    print(f"{'='*60}\n")

    sys.exit(0 if all(results.values()) else 1)


if __name__ == "__main__":
    asyncio.run(main())
