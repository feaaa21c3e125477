"""
Seed the results database with random speed tests.

Spreads results over a fixed set of world cities, with a little jitter on
the coordinates so radius queries have something to find. Every row gets a
fresh submission id and the same placeholder address.

Usage:
    python scripts/seed.py
    python scripts/seed.py --count 500
    python scripts/seed.py --database-url sqlite:///./seed.db
"""
import argparse
import os
import random
import sys
import uuid
from datetime import datetime, timedelta, timezone

# Add project root to path so we can import our modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from src.speedtest_api.config import DATABASE_URL, DEDUP_KEY
from src.speedtest_api.database import ResultStore, SpeedTestResult
from src.speedtest_api.time_utils import submission_minute

LOCATIONS = [
    {"city": "Tokyo", "country": "Japan", "latitude": 35.6895, "longitude": 139.6917},
    {"city": "New York", "country": "USA", "latitude": 40.7128, "longitude": -74.0060},
    {"city": "London", "country": "UK", "latitude": 51.5074, "longitude": -0.1278},
    {"city": "Paris", "country": "France", "latitude": 48.8566, "longitude": 2.3522},
    {"city": "Sydney", "country": "Australia", "latitude": -33.8688, "longitude": 151.2093},
    {"city": "Cairo", "country": "Egypt", "latitude": 30.0444, "longitude": 31.2357},
    {"city": "Rio de Janeiro", "country": "Brazil", "latitude": -22.9068, "longitude": -43.1729},
    {"city": "Moscow", "country": "Russia", "latitude": 55.7558, "longitude": 37.6173},
    {"city": "Beijing", "country": "China", "latitude": 39.9042, "longitude": 116.4074},
    {"city": "Lagos", "country": "Nigeria", "latitude": 6.5244, "longitude": 3.3792},
    {"city": "Buenos Aires", "country": "Argentina", "latitude": -34.6037, "longitude": -58.3816},
    {"city": "Mumbai", "country": "India", "latitude": 19.0760, "longitude": 72.8777},
]

PLACEHOLDER_ADDRESS = "0x0000000000000000000000000000000000000001"


def random_result(now: datetime) -> SpeedTestResult:
    """Build one random result somewhere in LOCATIONS within the last 30 days."""
    place = random.choice(LOCATIONS)
    return SpeedTestResult(
        submission_id=str(uuid.uuid4()),
        location=f"{place['city']}, {place['country']}",
        city=place["city"],
        country=place["country"],
        download_speed=round(random.uniform(10, 1000), 2),
        upload_speed=round(random.uniform(5, 500), 2),
        ping=round(random.uniform(1, 100), 1),
        timestamp=now - timedelta(seconds=random.randint(0, 30 * 24 * 3600)),
        submission_minute=submission_minute(now),
        address=PLACEHOLDER_ADDRESS,
        latitude=place["latitude"] + random.uniform(-0.1, 0.1),
        longitude=place["longitude"] + random.uniform(-0.1, 0.1),
    )


def main():
    parser = argparse.ArgumentParser(description="Seed the speed test results database")
    parser.add_argument("--count", type=int, default=100, help="Number of results to insert (default: 100)")
    parser.add_argument("--database-url", default=DATABASE_URL, help="SQLAlchemy database URL")
    args = parser.parse_args()

    print(f"Seeding {args.database_url} with {args.count} results...")

    store = ResultStore.from_url(args.database_url, dedup_key=DEDUP_KEY)
    store.create_schema()

    now = datetime.now(timezone.utc)
    try:
        for _ in range(args.count):
            store.insert(random_result(now))
    finally:
        total = store.count()
        store.close()

    print(f"Done. Database now holds {total} results.")


if __name__ == "__main__":
    main()
