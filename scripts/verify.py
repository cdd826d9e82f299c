"""
Order Store Verification Script

Verifies data integrity of the JSON order document.
Run from project root: python scripts/verify.py

Version: 1.0.0
"""

import json
import os
import sys
from collections import Counter
from datetime import datetime

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from pydantic import ValidationError

from tiffin.core.config import get_settings
from tiffin.models import Order, OrderStatus
from tiffin.services.pricing import PricingEngine


def verify_store() -> bool:
    """Verify the JSON store after a simulation."""
    settings = get_settings()
    store_file = settings.store_path

    print("=" * 60)
    print("🔍 ORDER STORE VERIFICATION REPORT")
    print("=" * 60)
    print(f"⏰ Timestamp: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print(f"📄 File: {store_file}")
    print("=" * 60)

    if not store_file.exists():
        print("\n❌ Store file not found!")
        print("   Start the server and run: python scripts/simulate.py")
        return False

    try:
        with store_file.open(encoding="utf-8") as fh:
            document = json.load(fh)
        print("\n✅ File is valid JSON")
    except ValueError as e:
        print(f"\n❌ Could not parse store file: {e}")
        return False

    missing = [key for key in ("orders", "menu", "config") if key not in document]
    if missing:
        print(f"\n⚠️ Missing top-level keys: {missing}")

    orders = []
    invalid = 0
    for raw in document.get("orders", []):
        try:
            orders.append(Order.model_validate(raw))
        except ValidationError:
            invalid += 1

    print(f"\n📊 STATISTICS:")
    print(f"   Total Orders: {len(orders) + invalid}")
    if invalid:
        print(f"   ⚠️ {invalid} orders do not match the order schema")

    problems = invalid

    duplicates = [i for i, n in Counter(o.id for o in orders).items() if n > 1]
    if duplicates:
        print(f"\n⚠️ {len(duplicates)} duplicate order IDs found!")
        problems += len(duplicates)
    else:
        print("✅ No duplicate order IDs")

    pricing = PricingEngine(settings.pricing, settings.delivery_slabs)
    mispriced = [
        o.id for o in orders
        if pricing.quote(o.plan_type, o.qty, o.distance_km).amount != o.amount
    ]
    if mispriced:
        print(f"⚠️ {len(mispriced)} orders whose amount differs from current pricing (first: {mispriced[0]})")
    else:
        print("✅ All amounts match current pricing")

    unverified = [
        o.id for o in orders
        if o.status not in (OrderStatus.PENDING_PAYMENT, OrderStatus.CANCELLED) and not o.is_paid
        and not any(h.actor == "admin" for h in o.history)
    ]
    if unverified:
        print(f"\n⚠️ {len(unverified)} orders advanced without a verified payment")
        problems += len(unverified)

    status_counts = Counter(o.status.value for o in orders)
    print(f"\n📦 STATUS:")
    for status in OrderStatus:
        print(f"   {status.value:<18} {status_counts.get(status.value, 0)}")

    paid_total = sum(o.amount for o in orders if o.is_paid)
    print(f"\n💰 REVENUE:")
    print(f"   Paid: ₹{paid_total:.2f}")

    print(f"\n📋 RECENT ORDERS:")
    print("-" * 60)
    for o in orders[:5]:
        print(f"   #{o.id}  {o.plan_type.value:<14} x{o.qty}  ₹{o.amount:<8.2f} {o.status.value}")

    print("\n" + "=" * 60)
    print("✅ VERIFICATION PASSED" if problems == 0 else f"❌ {problems} PROBLEMS FOUND")
    print("=" * 60)
    return problems == 0


if __name__ == "__main__":
    sys.exit(0 if verify_store() else 1)
