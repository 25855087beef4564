import logging
import os
import random
import time
from concurrent.futures import ThreadPoolExecutor

import pandas as pd

from dispatch.service import MarketplaceService
from orders.store import InMemoryRequestStore
from payments.settlement import new_payment_reference

def load_requests(filepath="mock_requests_generated.csv", limit=100) -> pd.DataFrame:
    # Resolve the correct path depending on where the user runs the script from.
    base_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    absolute_path = filepath if os.path.isabs(filepath) else os.path.join(base_dir, filepath)

    # phone numbers must stay strings ("+234...")
    df = pd.read_csv(absolute_path, dtype={"pickup_contact_phone": str, "dropoff_contact_phone": str})
    request_ids = df["request_id"].drop_duplicates().head(limit)
    return df[df["request_id"].isin(request_ids)]

def _coordinates(row, prefix):
    lat, lng = row[f"{prefix}_lat"], row[f"{prefix}_lng"]
    if pd.isna(lat) or pd.isna(lng):
        return None
    return {"lat": float(lat), "lng": float(lng)}

def _payload(row):
    # older field spellings on purpose: the service translates them
    return {
        "delivery_type": row["vehicle_class"],
        "pickup_location": row["pickup_address"],
        "dropoff_location": row["dropoff_address"],
        "pickup_coordinates": _coordinates(row, "pickup"),
        "dropoff_coordinates": _coordinates(row, "dropoff"),
        "item_description": row["item_description"],
        "package_weight": row["weight"],
        "sender_name": row["pickup_contact_name"],
        "sender_phone": row["pickup_contact_phone"],
        "receiver_name": row["dropoff_contact_name"],
        "receiver_phone": row["dropoff_contact_phone"],
    }

def run_simulation(filepath="mock_requests_generated.csv", limit=100, racers=4):
    print("=== STARTING BIDDING SIMULATION ===")
    logging.basicConfig(level=logging.WARNING)

    df = load_requests(filepath, limit=limit)
    print(f"Loaded {df['request_id'].nunique()} requests with {len(df)} bids.\n")

    stats = {"created": 0, "rejected": 0, "accepted": 0, "conflicts": 0, "delivered": 0, "fallback_estimates": 0}
    violations = []
    start_time = time.time()

    with MarketplaceService(InMemoryRequestStore()) as service, ThreadPoolExecutor(max_workers=racers) as pool:
        for _, group in df.groupby("request_id", sort=False):
            first = group.iloc[0]
            created = service.create_request(first["requester_id"], _payload(first))
            if not created["success"]:
                stats["rejected"] += 1
                print(f"[REJECTED] {first['request_id']}: {created['error']['fields']}")
                continue
            stats["created"] += 1
            request_id = created["data"]["id"]
            owner = created["data"]["requester_id"]

            estimate = service.estimate_trip(request_id)["data"]
            if estimate["is_fallback"]:
                stats["fallback_estimates"] += 1

            bid_ids = []
            for _, row in group.iterrows():
                result = service.submit_bid(request_id, {
                    "rider_id": row["bidder_id"],
                    "amount": int(row["bid_amount"]),
                    "delivery_time": row["estimated_time"],
                })
                if result["success"]:
                    bid_ids.append(result["data"]["id"])

            # Several requesters' devices clicking "accept" on different bids at once
            contenders = random.sample(bid_ids, k=min(racers, len(bid_ids)))
            results = list(pool.map(lambda bid_id: service.accept_bid(request_id, bid_id, owner), contenders))
            winners = [r for r in results if r["success"]]
            stats["conflicts"] += sum(1 for r in results if not r["success"] and r["error"]["type"] == "ConflictError")

            accepted = [b for b in service.list_bids(request_id)["data"] if b["state"] == "accepted"]
            if len(winners) != 1 or len(accepted) != 1:
                violations.append(request_id)
                print(f"[VIOLATION] {request_id}: {len(winners)} winners, {len(accepted)} accepted bids")
                continue
            stats["accepted"] += 1

            total = winners[0]["data"]["request"]["total_amount"]
            reference = new_payment_reference()
            service.confirm_payment(request_id, reference, amount=total)
            # gateway callbacks are delivered at least once
            service.confirm_payment(request_id, reference, amount=total)

            for step in (service.assign_rider, service.mark_pickup_ready, service.mark_in_transit, service.mark_delivered):
                step(request_id)
            if service.query_state(request_id)["data"]["state"] == "delivered":
                stats["delivered"] += 1

    print("\n=== SIMULATION COMPLETE ===")
    print(f"Requests created: {stats['created']} (rejected by validation: {stats['rejected']})")
    print(f"Fallback trip estimates: {stats['fallback_estimates']}")
    print(f"Accepted: {stats['accepted']}, losing accept calls: {stats['conflicts']}")
    print(f"Delivered: {stats['delivered']}")
    print(f"Finished in {time.time() - start_time:.2f}s.")

    if violations:
        raise SystemExit(f"At-most-one-accepted-bid invariant violated on {len(violations)} request(s)")
    print("✅ Every request ended with exactly one accepted bid.")

if __name__ == "__main__":
    run_simulation()
