#!/usr/bin/env python3
"""
OpenMTS inventory management CLI.

Usage:
    python manage.py init-db              Apply pending schema migrations
    python manage.py seed                 Create sample material batches
    python manage.py list                 List batches (--material, --site)
    python manage.py check                Compare every batch with its transaction log
    python manage.py reconcile BATCH_ID   Reset a batch's quantity to its log sum
"""

import argparse
import asyncio
import random
import sys

from openmts.application import get_inventory_service, seed_sample_data
from openmts.config import configure_logging, get_settings
from openmts.core.exceptions import InventoryError
from openmts.infrastructure.storage.sqlite import close_pool
from openmts.infrastructure.storage.sqlite.migrations import initialize_database


async def _init_db(args: argparse.Namespace) -> int:
    applied = await initialize_database(create_backup_before=not args.no_backup)
    if not applied:
        print("Database is up to date.")
    for item in applied:
        print(f"Applied {item.migration.label} ({item.duration_ms} ms)")
    return 0


async def _seed(args: argparse.Namespace) -> int:
    service = await get_inventory_service()
    rng = random.Random(args.seed) if args.seed is not None else None
    batches = await seed_sample_data(service, rng=rng)
    print(f"Created {len(batches)} sample batches.")
    return 0


async def _list(args: argparse.Namespace) -> int:
    service = await get_inventory_service()
    batches = await service.get_batches(material_id=args.material, site_id=args.site)
    for batch in batches:
        flags = []
        if batch.is_locked:
            flags.append("locked")
        if batch.is_archived:
            flags.append("archived")
        print(
            f"{batch.id}  material={batch.material_id}  "
            f"site={batch.storage_location.storage_site_name or batch.storage_location.storage_site_id}  "
            f"qty={batch.quantity:.3f}  {' '.join(flags)}".rstrip()
        )
    print(f"{len(batches)} batches.")
    return 0


async def _check(args: argparse.Namespace) -> int:
    service = await get_inventory_service()
    inconsistent = 0
    for batch in await service.get_batches():
        report = await service.check_consistency(batch.id)  # type: ignore[arg-type]
        if not report.is_consistent:
            inconsistent += 1
            print(
                f"INCONSISTENT {report.batch_id}: batch={report.batch_quantity:.3f} "
                f"log={report.log_quantity:.3f} ({report.entries} entries)"
            )
    if inconsistent:
        print(f"{inconsistent} inconsistent batches. Use 'reconcile' to repair.")
        return 1
    print("All batches consistent.")
    return 0


async def _reconcile(args: argparse.Namespace) -> int:
    service = await get_inventory_service()
    report = await service.reconcile_batch(args.batch_id)
    print(f"{report.batch_id}: quantity={report.batch_quantity:.3f} ({report.entries} entries)")
    return 0


def _run(handler, args: argparse.Namespace) -> int:
    async def runner() -> int:
        try:
            return await handler(args)
        finally:
            await close_pool()

    try:
        return asyncio.run(runner())
    except InventoryError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 2


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="OpenMTS inventory management CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    sub = parser.add_subparsers(dest="command", required=True)

    # init-db
    p_init = sub.add_parser("init-db", help="Apply pending schema migrations")
    p_init.add_argument("--no-backup", action="store_true", help="Skip the pre-migration backup")
    p_init.set_defaults(func=_init_db)

    # seed
    p_seed = sub.add_parser("seed", help="Create sample material batches")
    p_seed.add_argument("--seed", type=int, default=None, help="Random seed for reproducible data")
    p_seed.set_defaults(func=_seed)

    # list
    p_list = sub.add_parser("list", help="List material batches")
    p_list.add_argument("--material", type=int, default=None, help="Filter by material ID")
    p_list.add_argument("--site", default=None, help="Filter by storage site ID")
    p_list.set_defaults(func=_list)

    # check
    p_check = sub.add_parser("check", help="Check every batch against its transaction log")
    p_check.set_defaults(func=_check)

    # reconcile
    p_reconcile = sub.add_parser("reconcile", help="Reset a batch's quantity to its log sum")
    p_reconcile.add_argument("batch_id", help="ID of the batch to reconcile")
    p_reconcile.set_defaults(func=_reconcile)

    args = parser.parse_args(argv)
    configure_logging()
    if get_settings().storage.backend == "memory" and args.command != "init-db":
        print("Warning: memory backend selected; changes are lost when the command exits.")
    return _run(args.func, args)


if __name__ == "__main__":
    sys.exit(main())
