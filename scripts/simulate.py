"""
Concurrency Simulation Script

Fires concurrent orders at a running server, then replays every signed
payment callback several times to check that confirmations are idempotent.
Run from project root: python scripts/simulate.py

The callback signatures use RAZORPAY_KEY_SECRET from the same .env the
server reads, so both must agree.

Version: 1.0.0
"""

import argparse
import asyncio
import os
import random
import sys
import time
from datetime import datetime
from typing import Any

import httpx

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from tiffin.core.config import get_settings
from tiffin.services.verification import sign

# Configuration
API_BASE_URL = "http://localhost:4000"
TOTAL_ORDERS = 50
CALLBACK_REPEATS = 3

NAMES = ["Asha", "Ravi", "Meera", "Karan", "Priya", "Arjun", "Neha", "Vikram", "Pooja", "Sanjay"]
AREAS = ["MG Road", "Station Road", "Civil Lines", "Model Town", "Sector 14", "Gandhi Nagar"]
PLAN_TYPES = ["daily", "breakfast", "monthlyVeg", "monthlyNonVeg"]
NOTES = ["", "Less spicy", "No onion", "Ring the bell", "Leave with guard"]


def generate_order_payload() -> dict[str, Any]:
    """Generate a random order request."""
    phone = f"9{random.randint(100000000, 999999999)}"
    return {
        "customer": {
            "name": random.choice(NAMES),
            "phone": phone,
            "address": f"{random.randint(1, 300)} {random.choice(AREAS)}",
        },
        "type": random.choice(PLAN_TYPES),
        "qty": random.randint(1, 3),
        "distanceKm": round(random.uniform(0, 12), 1),
        "note": random.choice(NOTES),
        "paymentMethod": "upi",
    }


async def send_order(client: httpx.AsyncClient, order_num: int) -> dict[str, Any]:
    """Place one order."""
    start_time = time.time()

    try:
        response = await client.post(f"{API_BASE_URL}/orders", json=generate_order_payload(), timeout=30.0)
    except httpx.HTTPError as e:
        return {"order_num": order_num, "success": False, "error": str(e)[:100], "time": 0.0}

    elapsed = round(time.time() - start_time, 3)
    if response.status_code != 200:
        return {"order_num": order_num, "success": False, "error": response.text[:100], "time": elapsed}

    order = response.json()["order"]
    return {
        "order_num": order_num,
        "success": True,
        "order_id": order["id"],
        "amount": order["amount"],
        "time": elapsed,
    }


async def send_callback(
    client: httpx.AsyncClient,
    key_secret: str,
    order_id: str,
) -> int:
    """Deliver the signed payment-link redirect for an order."""
    payment_id = f"pay_sim_{order_id}"
    link_id = f"plink_sim_{order_id}"
    params = {
        "razorpay_payment_id": payment_id,
        "razorpay_payment_link_id": link_id,
        "razorpay_signature": sign(key_secret, f"{link_id}|{payment_id}"),
        "orderId": order_id,
    }
    response = await client.get(f"{API_BASE_URL}/payments/webhook", params=params, timeout=30.0)
    return response.status_code


async def run_simulation(num_orders: int = TOTAL_ORDERS, repeats: int = CALLBACK_REPEATS) -> bool:
    """
    Run the simulation.

    Args:
        num_orders: Number of concurrent orders
        repeats: How many times each payment callback is delivered
    """
    key_secret = get_settings().razorpay_key_secret
    if not key_secret:
        print("❌ RAZORPAY_KEY_SECRET is not set; callbacks cannot be signed.")
        return False

    print("=" * 70)
    print("🔥 CONCURRENCY SIMULATION")
    print("=" * 70)
    print(f"📋 Orders: {num_orders}  (callbacks x{repeats})")
    print(f"🎯 Target: {API_BASE_URL}")
    print(f"⏰ Started: {datetime.now().strftime('%H:%M:%S')}")
    print("=" * 70)

    start_time = time.time()

    async with httpx.AsyncClient() as client:
        print("\n🚀 Placing orders...\n")
        results = await asyncio.gather(*(send_order(client, i + 1) for i in range(num_orders)))
        successful = [r for r in results if r["success"]]
        failed = [r for r in results if not r["success"]]

        ids = [r["order_id"] for r in successful]
        print(f"✅ Placed: {len(successful)}/{num_orders}")
        print(f"🆔 Unique ids: {len(set(ids))}")

        print("\n💸 Delivering duplicate payment callbacks...\n")
        callbacks = [send_callback(client, key_secret, order_id) for order_id in ids for _ in range(repeats)]
        statuses = await asyncio.gather(*callbacks)
        print(f"✅ Callbacks answered OK: {statuses.count(200)}/{len(statuses)}")

        print("\n🔍 Checking final statuses...\n")
        orders = await asyncio.gather(*(client.get(f"{API_BASE_URL}/orders/{i}") for i in ids))
        not_paid = [o.json() for o in orders if o.json().get("status") != "paid"]
        repeated = [o.json() for o in orders if len(o.json().get("history", [])) != 1]

    total_time = round(time.time() - start_time, 2)

    print("=" * 70)
    print("📊 SIMULATION RESULTS")
    print("=" * 70)
    print(f"⏱️  Total Time: {total_time}s")
    if successful:
        avg_time = round(sum(r["time"] for r in successful) / len(successful), 3)
        print(f"   Average order response: {avg_time}s")
        print(f"   💰 Total: ₹{sum(r['amount'] for r in successful):.2f}")

    if failed:
        print(f"\n⚠️  Failed orders (showing first 5):")
        for f in failed[:5]:
            print(f"   Order #{f['order_num']}: {f.get('error', 'Unknown error')}")

    ok = not failed and len(set(ids)) == len(ids) and not not_paid and not repeated
    print(f"\n{'✅' if not not_paid else '❌'} Orders not paid: {len(not_paid)}")
    print(f"{'✅' if not repeated else '❌'} Orders with repeated history: {len(repeated)}")
    print("\nNext: python scripts/verify.py")
    print("=" * 70)
    return ok


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Concurrency Simulation Script")
    parser.add_argument("--orders", type=int, default=TOTAL_ORDERS, help="Number of orders")
    parser.add_argument("--repeats", type=int, default=CALLBACK_REPEATS, help="Deliveries per callback")
    parser.add_argument("--url", default=API_BASE_URL, help="Server base URL")
    args = parser.parse_args()

    API_BASE_URL = args.url.rstrip("/")
    success = asyncio.run(run_simulation(num_orders=args.orders, repeats=args.repeats))
    sys.exit(0 if success else 1)
