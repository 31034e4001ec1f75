#!/usr/bin/env python3
"""
Presence Registry Test Script

Exercises the in-memory presence registry and its reaper.

Usage:
    python scripts/test_presence_registry.py

This script:
1. Upserts heartbeats and checks snapshots
2. Verifies refresh semantics and defaults
3. Checks the expiry boundary with controlled clocks
4. Runs concurrent upserts
5. Drives the reaper directly and through its background loop
"""

import asyncio
import logging
import sys
from datetime import datetime, timedelta, timezone
from uuid import uuid4

# Add project root to path
sys.path.insert(0, ".")

from flowclient_api.presence import (
    DEFAULT_CLIENT_TAG,
    DEFAULT_CLIENT_VERSION,
    PresenceReaper,
    PresenceRegistry,
    ReaperState,
)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

T0 = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
TIMEOUT = 60.0


async def test_upsert_visible_in_snapshot():
    """A heartbeat shows up once in the snapshot with a fresh last_seen."""
    logger.info("=" * 60)
    logger.info("Test: Upsert Visible In Snapshot")
    logger.info("=" * 60)

    registry = PresenceRegistry()
    client_id = str(uuid4())

    before = datetime.now(timezone.utc)
    result = await registry.upsert(client_id, "alice")

    assert result.was_new, "First heartbeat should create a record"
    assert result.total == 1, f"Expected total 1, got {result.total}"

    snapshot = await registry.snapshot()
    matching = [r for r in snapshot if r.client_id == client_id]
    assert len(matching) == 1, f"Expected exactly one record, got {len(matching)}"

    delta = (matching[0].last_seen - before).total_seconds()
    assert 0 <= delta < 1, f"last_seen should be close to call time, delta={delta}"

    logger.info("✓ Upsert visible in snapshot passed")


async def test_refresh_does_not_grow_count():
    """Repeated heartbeats for one id keep the count at one."""
    logger.info("=" * 60)
    logger.info("Test: Refresh Does Not Grow Count")
    logger.info("=" * 60)

    registry = PresenceRegistry()
    client_id = str(uuid4())

    first = await registry.upsert(client_id, "alice", now=T0)
    for i in range(5):
        result = await registry.upsert(client_id, f"alice{i}", now=T0 + timedelta(seconds=i + 1))
        assert not result.was_new, "Refresh should not report a new record"
        assert result.total == first.total == 1

    assert registry.count == 1
    assert await registry.size() == 1

    record = await registry.get(client_id)
    assert record.display_name == "alice4", f"Latest name should win, got {record.display_name}"
    assert record.last_seen == T0 + timedelta(seconds=5)
    assert record.first_seen == T0, "first_seen should survive refreshes"

    logger.info("✓ Refresh semantics passed")


async def test_defaults_applied():
    """Missing client tag and version fall back to the named defaults."""
    logger.info("=" * 60)
    logger.info("Test: Defaults Applied")
    logger.info("=" * 60)

    registry = PresenceRegistry()
    await registry.upsert("a1111111-1111-1111-1111-111111111111", "alice")
    await registry.upsert("b2222222-2222-2222-2222-222222222222", "bob", "Lunar", "1.20.4")

    alice = await registry.get("a1111111-1111-1111-1111-111111111111")
    assert alice.client_tag == DEFAULT_CLIENT_TAG == "FlowClient"
    assert alice.client_version == DEFAULT_CLIENT_VERSION == "1.8.9"

    bob = await registry.get("b2222222-2222-2222-2222-222222222222")
    assert bob.client_tag == "Lunar"
    assert bob.client_version == "1.20.4"

    versions = await registry.version_counts()
    assert versions == {"1.8.9": 1, "1.20.4": 1}, f"Unexpected versions: {versions}"

    logger.info("✓ Defaults passed")


async def test_snapshot_returns_copies():
    """Mutating a snapshot entry does not touch the registry."""
    logger.info("=" * 60)
    logger.info("Test: Snapshot Returns Copies")
    logger.info("=" * 60)

    registry = PresenceRegistry()
    client_id = str(uuid4())
    await registry.upsert(client_id, "alice", now=T0)

    snapshot = await registry.snapshot()
    snapshot[0].display_name = "mallory"
    snapshot.clear()

    record = await registry.get(client_id)
    assert record.display_name == "alice"
    assert registry.count == 1

    assert await registry.get(str(uuid4())) is None

    logger.info("✓ Snapshot copies passed")


async def test_expiry_boundary():
    """Records one second past the timeout go; one second short of it stay."""
    logger.info("=" * 60)
    logger.info("Test: Expiry Boundary")
    logger.info("=" * 60)

    registry = PresenceRegistry()
    client_id = str(uuid4())
    await registry.upsert(client_id, "alice", now=T0)

    removed = await registry.sweep(T0 + timedelta(seconds=TIMEOUT - 1), TIMEOUT)
    assert removed == 0, f"Record should be retained, removed={removed}"
    assert await registry.get(client_id) is not None

    removed = await registry.sweep(T0 + timedelta(seconds=TIMEOUT), TIMEOUT)
    assert removed == 0, "A record exactly at the timeout is not yet stale"

    removed = await registry.sweep(T0 + timedelta(seconds=TIMEOUT + 1), TIMEOUT)
    assert removed == 1, f"Record should be removed, removed={removed}"
    assert await registry.get(client_id) is None
    assert registry.count == 0

    logger.info("✓ Expiry boundary passed")


async def test_sweep_keeps_refreshed_records():
    """Only the stale subset is evicted; a rejoin starts a new session."""
    logger.info("=" * 60)
    logger.info("Test: Sweep Keeps Refreshed Records")
    logger.info("=" * 60)

    registry = PresenceRegistry()
    stale_id, fresh_id = str(uuid4()), str(uuid4())
    await registry.upsert(stale_id, "stale", now=T0)
    await registry.upsert(fresh_id, "fresh", now=T0)
    await registry.upsert(fresh_id, "fresh", now=T0 + timedelta(seconds=30))

    removed = await registry.sweep(T0 + timedelta(seconds=TIMEOUT + 1), TIMEOUT)
    assert removed == 1
    names = [r.display_name for r in await registry.snapshot()]
    assert names == ["fresh"], f"Unexpected survivors: {names}"

    rejoin_at = T0 + timedelta(seconds=120)
    result = await registry.upsert(stale_id, "stale", now=rejoin_at)
    assert result.was_new, "Heartbeat after eviction should count as a join"
    record = await registry.get(stale_id)
    assert record.first_seen == rejoin_at

    logger.info("✓ Partial sweep passed")


async def test_concurrent_upserts():
    """N concurrent heartbeats with distinct ids yield N intact records."""
    logger.info("=" * 60)
    logger.info("Test: Concurrent Upserts")
    logger.info("=" * 60)

    registry = PresenceRegistry()
    n = 200
    ids = [str(uuid4()) for _ in range(n)]

    await asyncio.gather(*[
        registry.upsert(client_id, f"player_{i}", "FlowClient", f"v{i}")
        for i, client_id in enumerate(ids)
    ])

    snapshot = await registry.snapshot()
    assert len(snapshot) == n, f"Expected {n} records, got {len(snapshot)}"
    assert registry.count == n

    by_id = {r.client_id: r for r in snapshot}
    for i, client_id in enumerate(ids):
        record = by_id[client_id]
        assert record.display_name == f"player_{i}"
        assert record.client_version == f"v{i}"

    logger.info("✓ Concurrent upserts passed")


async def test_clear():
    """Clear drops everything and reports how much."""
    logger.info("=" * 60)
    logger.info("Test: Clear")
    logger.info("=" * 60)

    registry = PresenceRegistry()
    for _ in range(3):
        await registry.upsert(str(uuid4()), "player")

    removed = await registry.clear()
    assert removed == 3
    assert registry.count == 0
    assert await registry.snapshot() == []

    logger.info("✓ Clear passed")


async def test_reaper_run_once():
    """A single reaper pass removes stale records using its clock."""
    logger.info("=" * 60)
    logger.info("Test: Reaper Run Once")
    logger.info("=" * 60)

    registry = PresenceRegistry()
    clock_now = [T0]
    reaper = PresenceReaper(
        registry,
        timeout_seconds=TIMEOUT,
        interval_seconds=15.0,
        clock=lambda: clock_now[0],
    )

    await registry.upsert(str(uuid4()), "alice", now=T0)
    await registry.upsert(str(uuid4()), "bob", now=T0 + timedelta(seconds=45))

    assert reaper.state == ReaperState.IDLE
    assert await reaper.run_once() == 0

    clock_now[0] = T0 + timedelta(seconds=TIMEOUT + 1)
    assert await reaper.run_once() == 1
    assert registry.count == 1
    assert reaper.state == ReaperState.IDLE

    # Explicit time overrides the clock
    assert await reaper.run_once(now=T0 + timedelta(seconds=200)) == 1
    assert registry.count == 0

    logger.info("✓ Reaper run once passed")


async def test_reaper_background_loop():
    """The background task sweeps on its own and stops cleanly."""
    logger.info("=" * 60)
    logger.info("Test: Reaper Background Loop")
    logger.info("=" * 60)

    registry = PresenceRegistry()
    reaper = PresenceReaper(registry, timeout_seconds=0.05, interval_seconds=0.02)

    await registry.upsert(str(uuid4()), "alice")
    await reaper.start()
    assert reaper.running

    # Starting twice keeps a single task
    await reaper.start()

    for _ in range(50):
        if registry.count == 0:
            break
        await asyncio.sleep(0.02)
    assert registry.count == 0, "Reaper should have evicted the stale record"

    await reaper.stop()
    assert not reaper.running
    assert reaper.state == ReaperState.STOPPED

    # Stopping twice is harmless
    await reaper.stop()

    logger.info("✓ Reaper background loop passed")


async def test_join_logged_only_for_new_clients(caplog):
    """[Join] is logged on the first heartbeat for an id, not on refreshes."""
    caplog.set_level(logging.INFO, logger="flowclient_api.presence")

    registry = PresenceRegistry()
    client_id = str(uuid4())

    await registry.upsert(client_id, "alice", now=T0)
    joins = [r for r in caplog.records if "[Join]" in r.getMessage()]
    assert len(joins) == 1, f"Expected one join line, got {len(joins)}"
    assert f"alice ({client_id}) - Total: 1" in joins[0].getMessage()

    caplog.clear()
    await registry.upsert(client_id, "alice2", now=T0 + timedelta(seconds=5))
    joins = [r for r in caplog.records if "[Join]" in r.getMessage()]
    assert joins == [], "A refresh must not log a join"


async def test_reaper_logs_only_when_removing(caplog):
    """[Cleanup] appears once per sweep that removes records, never for empty sweeps."""
    caplog.set_level(logging.INFO, logger="flowclient_api.presence")

    registry = PresenceRegistry()
    reaper = PresenceReaper(registry, timeout_seconds=TIMEOUT)
    await registry.upsert(str(uuid4()), "alice", now=T0)
    await registry.upsert(str(uuid4()), "bob", now=T0 + timedelta(seconds=45))

    caplog.clear()
    assert await reaper.run_once(now=T0 + timedelta(seconds=TIMEOUT - 1)) == 0
    cleanups = [r for r in caplog.records if "[Cleanup]" in r.getMessage()]
    assert cleanups == [], "A sweep that removes nothing must stay silent"

    assert await reaper.run_once(now=T0 + timedelta(seconds=TIMEOUT + 1)) == 1
    cleanups = [r for r in caplog.records if "[Cleanup]" in r.getMessage()]
    assert len(cleanups) == 1, f"Expected one cleanup line, got {len(cleanups)}"
    assert cleanups[0].getMessage() == "[Cleanup] Removed 1 inactive players. Online: 1"
    assert cleanups[0].levelno == logging.INFO


async def main():
    """Run all tests."""
    logger.info("Presence Registry Test Suite")
    logger.info("=" * 60)

    try:
        await test_upsert_visible_in_snapshot()
        await test_refresh_does_not_grow_count()
        await test_defaults_applied()
        await test_snapshot_returns_copies()
        await test_expiry_boundary()
        await test_sweep_keeps_refreshed_records()
        await test_concurrent_upserts()
        await test_clear()
        await test_reaper_run_once()
        await test_reaper_background_loop()
        # Log assertions need pytest's caplog fixture; run them with pytest

        logger.info("")
        logger.info("=" * 60)
        logger.info("All tests passed! ✓")
        logger.info("=" * 60)

    except AssertionError as e:
        logger.error(f"Test failed: {e}")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
