import pandas as pd
import numpy as np
import uuid

MOBILE_PREFIXES = ["803", "806", "813", "703", "706", "810"]

def _phone():
    # Nigerian mobile numbers: +234 + 3-digit operator prefix + 7 digits
    return f"+234{np.random.choice(MOBILE_PREFIXES)}{np.random.randint(0, 10_000_000):07d}"

def generate_mock_requests(num_requests=200, num_bidders=25, max_bids=5, output_file="mock_requests_generated.csv"):
    """
    Generates delivery requests around Lagos, each with a handful of carrier
    bids, one row per bid. Requests are built so several bids compete for the
    same request, which is what the acceptance race in the simulation needs.
    """
    # Center around Lagos Island
    CENTER_LAT = 6.5244
    CENTER_LON = 3.3792

    bidders = [f"rider_{str(uuid.uuid4())[:8]}" for _ in range(num_bidders)]

    data = []
    for request_index in range(num_requests):
        request_id = f"r_{str(request_index+1).zfill(5)}"
        vehicle_class = np.random.choice(["bike", "van", "truck", "fuel"], p=[0.6, 0.2, 0.15, 0.05])

        # Pickups within ~10km of the center, dropoffs within ~15km of the pickup
        pickup_lat = CENTER_LAT + np.random.uniform(-0.09, 0.09)
        pickup_lon = CENTER_LON + np.random.uniform(-0.09, 0.09)
        dropoff_lat = pickup_lat + np.random.uniform(-0.13, 0.13)
        dropoff_lon = pickup_lon + np.random.uniform(-0.13, 0.13)

        # bikes stay under the weight cap
        weight = np.random.uniform(0.5, 19.5) if vehicle_class == "bike" else np.random.uniform(5.0, 500.0)

        # coordinates left out on ~10% of requests to exercise the fallback estimate
        has_coordinates = np.random.rand() > 0.1

        common = {
            "request_id": request_id,
            "requester_id": f"u_{np.random.randint(1000, 9999)}",
            "vehicle_class": vehicle_class,
            "pickup_address": f"{np.random.randint(1, 200)} Marina Road, Lagos",
            "dropoff_address": f"{np.random.randint(1, 200)} Admiralty Way, Lekki",
            "pickup_lat": np.round(pickup_lat, 6) if has_coordinates else np.nan,
            "pickup_lng": np.round(pickup_lon, 6) if has_coordinates else np.nan,
            "dropoff_lat": np.round(dropoff_lat, 6) if has_coordinates else np.nan,
            "dropoff_lng": np.round(dropoff_lon, 6) if has_coordinates else np.nan,
            "item_description": np.random.choice(["Documents", "Groceries", "Electronics", "Furniture", "Diesel"]),
            "weight": np.round(weight, 1),
            "pickup_contact_name": f"Sender {request_index+1}",
            "pickup_contact_phone": _phone(),
            "dropoff_contact_name": f"Receiver {request_index+1}",
            "dropoff_contact_phone": _phone(),
        }

        num_bids = np.random.randint(1, max_bids + 1)
        for bidder in np.random.choice(bidders, size=num_bids, replace=False):
            row = dict(common)
            row["bidder_id"] = bidder
            # whole naira amounts between 1,000 and 15,000
            row["bid_amount"] = int(np.random.randint(10, 151) * 100)
            row["estimated_time"] = f"{np.random.randint(20, 90)} mins"
            data.append(row)

    df = pd.DataFrame(data)
    df.to_csv(output_file, index=False)
    print(f"✅ Generated {num_requests} requests with {len(df)} bids and saved to '{output_file}'")

    print("\nBids per vehicle class:")
    counts = df.groupby("vehicle_class")["request_id"].count().sort_values(ascending=False)
    for name, count in counts.items():
        print(f"  {name}: {count} bids")

if __name__ == "__main__":
    generate_mock_requests(num_requests=200, num_bidders=25)
