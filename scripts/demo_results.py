"""
Demo script to show submissions, duplicates and leaderboard queries.

This script talks to a running API as a handful of users:
1. Each user submits a few speed tests around Times Square
2. One submission is replayed to show duplicate rejection (409)
3. The leaderboard and a radius query are printed

The API trusts the x-address header set by the auth proxy, so the demo
sets it directly.

Usage:
    uvicorn src.speedtest_api.main:app --reload
    python scripts/demo_results.py
    python scripts/demo_results.py --users 5 --tests 3
"""
import requests
import random
import uuid
import argparse

# Times Square, NYC
DEMO_LOCATION = {
    "latitude": 40.758,
    "longitude": -73.9855
}

API_URL = "http://localhost:8000"


def submit(address: str, submission_id: str) -> requests.Response:
    return requests.post(
        f"{API_URL}/results",
        headers={"x-address": address},
        json={
            "location": "New York, New York, United States",
            "download_speed": round(random.uniform(20, 900), 2),
            "upload_speed": round(random.uniform(5, 300), 2),
            "ping": round(random.uniform(2, 80), 1),
            "latitude": DEMO_LOCATION["latitude"] + random.uniform(-0.02, 0.02),
            "longitude": DEMO_LOCATION["longitude"] + random.uniform(-0.02, 0.02),
            "submission_id": submission_id
        },
        timeout=5
    )


def main():
    parser = argparse.ArgumentParser(description="Demo speed test submissions")
    parser.add_argument("--users", type=int, default=3, help="Number of users (default: 3)")
    parser.add_argument("--tests", type=int, default=4, help="Speed tests per user (default: 4)")
    parser.add_argument("--radius", type=float, default=2.0, help="Radius for the nearby query in km (default: 2)")
    args = parser.parse_args()

    print("=" * 60)
    print("SPEED TEST DEMO")
    print("=" * 60)

    # Check API is running
    try:
        response = requests.get(f"{API_URL}/health", timeout=5)
        if response.status_code != 200:
            print("ERROR: API not healthy")
            return
        print("API is running")
    except requests.ConnectionError:
        print("ERROR: Cannot connect to API at", API_URL)
        print("Make sure to run: uvicorn src.speedtest_api.main:app --reload")
        return

    print()
    print("Submitting results...")
    print()

    last_submission = None
    for u in range(1, args.users + 1):
        address = f"0x{u:040x}"
        for _ in range(args.tests):
            submission_id = str(uuid.uuid4())
            response = submit(address, submission_id)
            print(f"  {address[:10]}...: {response.status_code} {response.json()}")
            last_submission = (address, submission_id)

    if last_submission:
        print()
        print("Replaying the last submission (expect 409)...")
        response = submit(*last_submission)
        print(f"  {response.status_code} {response.json()}")

    print()
    print("-" * 60)
    print("LEADERBOARD:")
    response = requests.get(f"{API_URL}/results", params={"leaderboard": "true"}, timeout=5)
    for i, result in enumerate(response.json()["results"], start=1):
        print(f"  {i:2d}. {result['address'][:10]}...  {result['download_speed']:7.2f} Mbps down")

    print()
    print(f"WITHIN {args.radius} KM OF TIMES SQUARE:")
    response = requests.get(
        f"{API_URL}/results",
        params={**DEMO_LOCATION, "radius": args.radius, "pageSize": 5},
        timeout=5
    )
    data = response.json()
    print(f"  {data['pagination']['totalResults']} results, showing {len(data['results'])}")
    for result in data["results"]:
        print(f"  {result['timestamp']}  {result['download_speed']:7.2f} / {result['upload_speed']:6.2f} Mbps  {result['ping']:5.1f} ms")
    print("=" * 60)


if __name__ == "__main__":
    main()
