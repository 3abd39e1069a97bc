#!/usr/bin/env python3
"""
CLI for the restock tracker.

Usage:
    # Extract a product page and print the shell
    python -m restocked.cli extract <url>

    # Extract and store a product page
    python -m restocked.cli ingest <url>

    # Track specific variants
    python -m restocked.cli track <variant_id> [<variant_id> ...]

    # Track variants whose snapshot is stale
    python -m restocked.cli track-due [--limit N]
"""

import asyncio
import json
import sys

from .config import config
from .fetcher import Fetcher
from .product import extract_product_shell
from .services import AlertGate, IngestionService, TelegramChannel, TrackingService
from .storage import DatabaseManager


def print_shell(shell):
    """Pretty print a product shell."""
    print(f"\n{'─'*50}")
    print(f"Title: {shell.title}")
    print(f"URL: {shell.final_url or shell.url}")
    if shell.pricing:
        print(f"Price: {shell.pricing.currency or '?'} {shell.pricing.amount}")
    else:
        print("Price: n/a")
    if shell.stock:
        print(f"Stock: {shell.stock.status.value} ({shell.stock.confidence}%, {shell.stock.strategy_name})")
    else:
        print("Stock: n/a")
    print(f"Images: {len(shell.images)}")
    print(f"Variants: {len(shell.variants)}")

    for v in shell.variants[:5]:
        status = "✓" if v.availability else "✗" if v.availability is False else "?"
        attrs = ", ".join(f"{a.name}={a.value}" for a in v.attributes) or "default"
        print(f"  {status} {attrs} - {v.external_id or 'no id'}")
    if len(shell.variants) > 5:
        print(f"  ... and {len(shell.variants) - 5} more")

    if shell.notes:
        print("\nNotes:")
        for note in shell.notes:
            print(f"  - {note}")
    print(f"{'─'*50}")


def build_tracking_service(db) -> TrackingService:
    alert_gate = AlertGate(db, TelegramChannel()) if config.telegram_configured() else None
    return TrackingService(db, Fetcher(), alert_gate=alert_gate)


async def cmd_extract(args):
    """Extract a single product."""
    if len(args) < 1:
        print("Usage: python -m restocked.cli extract <url>")
        return 1

    result = await Fetcher().fetch(args[0])
    shell = extract_product_shell(result)
    print_shell(shell)
    if "--json" in args:
        print(json.dumps(shell.to_dict(), indent=2, default=str))
    return 0 if result.success else 1


async def cmd_ingest(args):
    """Extract and store a product."""
    if len(args) < 1:
        print("Usage: python -m restocked.cli ingest <url>")
        return 1

    result = await Fetcher().fetch(args[0])
    if not result.success:
        print(f"\n❌ Fetch failed: {result.error}")
        return 1

    shell = extract_product_shell(result)
    db = DatabaseManager()
    try:
        ingested = IngestionService(db).ingest(shell)
    finally:
        db.close()

    print_shell(shell)
    print(f"\n✓ Stored product {ingested.product['id']} with {len(ingested.variants)} variant(s)")
    for variant in ingested.variants:
        print(f"  #{variant['id']} {variant['attributes'] or 'default'}")
    return 0


def print_batch(summary):
    for outcome in summary.results:
        if outcome.success:
            r = outcome.result
            print(f"  ✓ variant {outcome.variant_id}: "
                  f"{r.notifications_created} notification(s), {r.alerts_sent} alert(s)")
        else:
            print(f"  ✗ variant {outcome.variant_id}: {outcome.error}")
    print(f"\n{summary.succeeded}/{summary.total} succeeded, {summary.failed} failed")


async def cmd_track(args):
    """Track the given variant ids."""
    try:
        variant_ids = [int(a) for a in args]
    except ValueError:
        print("Variant ids must be integers")
        return 1
    if not variant_ids:
        print("Usage: python -m restocked.cli track <variant_id> [<variant_id> ...]")
        return 1

    db = DatabaseManager()
    try:
        summary = await build_tracking_service(db).track_variants(variant_ids)
    finally:
        db.close()
    print_batch(summary)
    return 0 if summary.failed == 0 else 1


async def cmd_track_due(args):
    """Track variants whose snapshot is missing or stale."""
    limit = 100
    if "--limit" in args:
        try:
            limit = int(args[args.index("--limit") + 1])
        except (IndexError, ValueError):
            print("Usage: python -m restocked.cli track-due [--limit N]")
            return 1

    db = DatabaseManager()
    try:
        summary = await build_tracking_service(db).track_due(limit)
    finally:
        db.close()
    if summary.total == 0:
        print("Nothing due for tracking")
        return 0
    print_batch(summary)
    return 0 if summary.failed == 0 else 1


async def cmd_help(_args=None):
    """Print help."""
    print(__doc__)
    return 0


async def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    if not argv:
        return await cmd_help()

    command = argv[0]
    args = argv[1:]

    commands = {
        "extract": cmd_extract,
        "ingest": cmd_ingest,
        "track": cmd_track,
        "track-due": cmd_track_due,
        "help": cmd_help,
    }

    if command in commands:
        return await commands[command](args)

    print(f"Unknown command: {command}")
    await cmd_help()
    return 2


def run():
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
