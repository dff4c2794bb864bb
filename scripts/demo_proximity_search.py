#!/usr/bin/env python3
"""
Demo: privacy-preserving proximity search end to end.

1. Encrypts randomly scattered POIs and stores them with only a 0.1 degree
   region in the clear
2. Runs a radius search in full-scan and region mode
3. Verifies the results against a plaintext haversine scan
"""
import sys
import argparse
from pathlib import Path

# Add src to path for development
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "src"))

from eplq.client.admin import PoiAdmin
from eplq.client.crypto import CryptoCodec
from eplq.client.search import ProximityQueryEngine
from eplq.config import get_settings
from eplq.logger import configure_logging
from eplq.server.store import InMemoryDocumentStore
from eplq.shared.geo import format_distance, haversine_distance_km
from eplq.shared.protocol import Identity, ScanMode
from eplq.shared.utils import Timer, generate_random_points


def run_demo(
    num_pois: int = 500,
    center_lat: float = 51.5074,
    center_lon: float = -0.1278,
    spread_km: float = 30.0,
    radius_km: float = 5.0,
    max_workers: int = 1,
):
    """Run the upload / search / verify cycle and print a report."""
    print("=" * 70)
    print("EPLQ - Encrypted Proximity Search Demo")
    print("=" * 70)
    print(f"\nConfiguration:")
    print(f"  POIs:          {num_pois:,}")
    print(f"  Center:        ({center_lat}, {center_lon})")
    print(f"  Spread:        {spread_km}km")
    print(f"  Search radius: {radius_km}km")
    print(f"  Workers:       {max_workers}")

    settings = get_settings()
    store = InMemoryDocumentStore()
    codec = CryptoCodec.from_settings(settings)
    admin = PoiAdmin.from_settings(settings, codec, store)
    engine = ProximityQueryEngine.from_settings(settings, codec, store)
    engine.max_workers = max_workers
    uploader = Identity(user_id="demo", email="demo@example.com")

    # =========================================================================
    # UPLOAD PHASE
    # =========================================================================
    print("\n" + "=" * 70)
    print("UPLOAD PHASE")
    print("=" * 70)

    points = generate_random_points(num_pois, center_lat, center_lon, spread_km, seed=42)
    rows = [
        {"name": f"POI {i:04d}", "latitude": lat, "longitude": lon}
        for i, (lat, lon) in enumerate(points)
    ]

    print(f"\n[1] Encrypting and storing {num_pois:,} POIs...")
    with Timer() as t:
        upload = admin.upload_many(rows, uploader)
    print(f"    {upload.message} ({t.elapsed_ms:.0f}ms)")

    sample = store.fetch_all(engine.collection)[0]
    print(f"\n[2] What the store sees for one record:")
    print(f"    region:     {tuple(sample.approximate_region)}")
    print(f"    ciphertext: {sample.encrypted_data[:48]}...")

    # =========================================================================
    # SEARCH PHASE
    # =========================================================================
    print("\n" + "=" * 70)
    print("SEARCH PHASE")
    print("=" * 70)

    responses = {}
    for mode in (ScanMode.FULL, ScanMode.REGION):
        response = engine.search(center_lat, center_lon, radius_km, mode=mode)
        responses[mode] = response
        print(f"\n[{mode.value}] {response.message}")
        print(response.stats)

    print(f"\nNearest results:")
    print("-" * 50)
    for r in responses[ScanMode.FULL].results[:10]:
        print(f"  {r.name}: {format_distance(r.distance_km)}")

    # =========================================================================
    # VERIFICATION
    # =========================================================================
    print("\n" + "=" * 70)
    print("VERIFICATION")
    print("=" * 70)

    expected = {
        row["name"]
        for row in rows
        if haversine_distance_km(center_lat, center_lon, row["latitude"], row["longitude"]) <= radius_km
    }
    for mode, response in responses.items():
        found = {r.name for r in response.results}
        status = "PASS" if found == expected else "FAIL"
        print(f"  {mode.value:7s} matches plaintext scan: {len(found)}/{len(expected)} [{status}]")

    print("\n" + "=" * 70)
    print("PRIVACY GUARANTEES")
    print("=" * 70)
    print("  [x] Store never saw names, descriptions or exact coordinates")
    print("  [x] Region mode only revealed which 0.1 degree cells were scanned")

    return responses


def main():
    parser = argparse.ArgumentParser(description="Demo encrypted proximity search")
    parser.add_argument("--num-pois", "-n", type=int, default=500, help="Number of POIs to upload")
    parser.add_argument("--radius", "-r", type=float, default=5.0, help="Search radius in km")
    parser.add_argument("--spread", type=float, default=30.0, help="Scatter radius of POIs in km")
    parser.add_argument("--workers", type=int, default=1, help="Decrypt worker threads")
    parser.add_argument(
        "--quick",
        action="store_true",
        help="Quick mode with 50 POIs",
    )
    args = parser.parse_args()

    configure_logging(level="WARNING")
    run_demo(
        num_pois=50 if args.quick else args.num_pois,
        spread_km=args.spread,
        radius_km=args.radius,
        max_workers=args.workers,
    )


if __name__ == "__main__":
    main()
