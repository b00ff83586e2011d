"""
Check both repair order backends and show which one would serve traffic.

Runs the health probes, then lists ACTIVE repair orders through the
failover arbiter and prints the serving backend and arbiter metrics.

Usage:
    python scripts/check_backends.py                 # Health + list ACTIVE orders
    python scripts/check_backends.py --status PAID   # List an archive state instead
    python scripts/check_backends.py --health-only   # Skip the listing
    python scripts/check_backends.py --debug         # Verbose logging

The bearer token is read from REPAIR_TRACKER_ACCESS_TOKEN.
"""

import argparse
import asyncio
import os
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from repair_tracker.common.config import Config
from repair_tracker.common.errors import BothBackendsFailedError
from repair_tracker.common.logger import set_global_debug_mode, setup_logging
from repair_tracker.common.repositories import DataAccessConfig, FailoverEvent
from repair_tracker.services import build_repair_order_service


async def env_token_provider() -> str:
    return os.getenv("REPAIR_TRACKER_ACCESS_TOKEN", "")


def print_event(event: FailoverEvent, operation_name: str) -> None:
    print(f"⚠️  {event.value} during {operation_name}")


async def check_backends(status: str, health_only: bool) -> int:
    service = build_repair_order_service(
        DataAccessConfig.from_env(), env_token_provider, on_event=print_event
    )

    health = await service.check_health()
    print("🩺 Backend health")
    for backend, ok in health.items():
        print(f"   {backend:<11} {'✓ reachable' if ok else '✗ unreachable'}")
    print()

    if health_only:
        return 0 if all(health.values()) else 1

    try:
        result = await service.list_repair_orders(status)
    except BothBackendsFailedError as e:
        print(f"❌ {e}")
        return 2

    print(f"📋 {len(result.data)} {status} repair orders (served by {result.source.value})")
    print("=" * 90)
    print(f"{'RO #':<12} | {'SHOP':<22} | {'STATUS':<24} | {'NEXT UPDATE':<12}")
    print("=" * 90)
    for order in result.data[:25]:
        next_update = order.next_date_to_update.isoformat() if order.next_date_to_update else "-"
        print(
            f"{order.order_number:<12} | {order.shop_name[:22]:<22} | "
            f"{order.current_status[:24]:<24} | {next_update:<12}"
        )
    print()

    metrics = service.get_metrics()
    print("📊 Arbiter metrics")
    for name, value in metrics.to_dict().items():
        print(f"   {name}: {value}")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Check repair order backends")
    parser.add_argument("--status", default="ACTIVE", choices=["ACTIVE", "PAID", "NET", "RETURNED"],
                        help="Archive state to list (default: ACTIVE)")
    parser.add_argument("--health-only", action="store_true", help="Only run health probes")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    if args.debug:
        set_global_debug_mode(True)
    setup_logging("DEBUG" if args.debug else Config.LOG_LEVEL, Config.LOG_FORMAT)

    try:
        Config.validate()
    except ValueError as e:
        print(f"❌ {e}")
        return 1

    print(Config.summary())
    print()
    return asyncio.run(check_backends(args.status, args.health_only))


if __name__ == "__main__":
    sys.exit(main())
