"""
Small load driver: insert, read and update records against a Sion server.

Reads SION_* settings from the environment (or .env) and prints latency
percentiles per operation.
"""
import argparse
import os

from dotenv import load_dotenv

from sion_ycsb import ConnectionManager, RecordStore, load_config_from_env
from sion_ycsb.logging_utils import setup_production_logging

load_dotenv()


def run(store: RecordStore, records: int, field_length: int) -> None:
    payload = os.urandom(field_length)
    keys = [f"user{i}" for i in range(records)]

    print(f"Inserting {records} records ({field_length} x {store.field_count} bytes)...")
    for key in keys:
        store.insert(key, {"field0": payload})

    print(f"Reading {records} records...")
    for key in keys:
        store.read(key)

    print(f"Updating {records} records...")
    for key in keys:
        store.update(key, {"field0": payload})


def report(store: RecordStore) -> None:
    stats = store.get_metrics()

    print(f"\n{'=' * 70}")
    print("SUMMARY")
    print(f"{'=' * 70}")
    for operation, latency in stats["latencies"].items():
        print(
            f"  {operation:<8} n={latency['count']:<6} avg={latency['avg']:.2f}ms "
            f"p50={latency['p50']:.2f}ms p95={latency['p95']:.2f}ms p99={latency['p99']:.2f}ms"
        )
    print(f"  errors:   {stats['errors']['total']}")
    print(f"  retries:  {stats['retries']}")
    print(f"  resets:   {stats['connection_resets']}")
    print(f"{'=' * 70}")


def main():
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--records", type=int, default=1000)
    parser.add_argument("--field-length", type=int, default=100)
    parser.add_argument("--log-level", default="WARNING")
    args = parser.parse_args()

    setup_production_logging(level=args.log_level, format="text")

    config = load_config_from_env()
    with RecordStore(ConnectionManager(config)) as store:
        run(store, args.records, args.field_length)
        report(store)


if __name__ == "__main__":
    main()
