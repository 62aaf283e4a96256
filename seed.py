#!/usr/bin/env python3
"""Seed script for a demo Data Bank database

Generates realistic demo data:
- the five Data Bank regions
- 500 customers, each reallocated across nodes 1-5 within one region
- 5,000 deposits, purchases and withdrawals during January-April 2020

Run with: python seed.py [db_path]
"""

import sys
from pathlib import Path
from decimal import Decimal
from datetime import date, timedelta
import random

# Add the project root to Python path
sys.path.insert(0, str(Path(__file__).resolve().parent))

from data_bank.config import get_config
from data_bank.models import Region, CustomerNode, CustomerTransaction, TransactionType
from data_bank.storage import SQLiteDataset

REGION_NAMES = ['Australia', 'America', 'Africa', 'Asia', 'Europe']

CUSTOMER_COUNT = 500
TRANSACTION_COUNT = 5000
PERIOD_START = date(2020, 1, 1)
PERIOD_DAYS = 120


def build_regions():
    return [Region(region_id, name) for region_id, name in enumerate(REGION_NAMES, start=1)]


def build_customer_nodes(rng: random.Random):
    nodes = []
    for customer_id in range(1, CUSTOMER_COUNT + 1):
        region_id = rng.randint(1, len(REGION_NAMES))
        start = PERIOD_START + timedelta(days=rng.randint(0, 14))
        while start < PERIOD_START + timedelta(days=PERIOD_DAYS):
            end = start + timedelta(days=rng.randint(0, 30))
            nodes.append(CustomerNode(customer_id, region_id, rng.randint(1, 5), start, end))
            start = end + timedelta(days=1)
    return nodes


def build_transactions(rng: random.Random):
    txn_types = [t.value for t in TransactionType]
    transactions = []
    for _ in range(TRANSACTION_COUNT):
        txn_type = rng.choices(txn_types, weights=[45, 30, 25])[0]
        amount = Decimal(rng.randint(1, 1000))
        transactions.append(CustomerTransaction(
            customer_id=rng.randint(1, CUSTOMER_COUNT),
            txn_date=PERIOD_START + timedelta(days=rng.randint(0, PERIOD_DAYS - 1)),
            txn_type=txn_type,
            txn_amount=amount
        ))
    return transactions


def seed_dataset(dataset, rng: random.Random) -> bool:
    """Load demo data into an empty dataset. Returns False if it already holds data."""
    if dataset.regions():
        return False
    with dataset.atomic():
        dataset.add_regions(build_regions())
        dataset.add_customer_nodes(build_customer_nodes(rng))
        dataset.add_transactions(build_transactions(rng))
    return True


def main():
    db_path = sys.argv[1] if len(sys.argv) > 1 else get_config().database_path
    rng = random.Random(42)
    
    print(f"🌱 Seeding Data Bank demo data into {db_path}")
    dataset = SQLiteDataset(db_path)
    try:
        if not seed_dataset(dataset, rng):
            print(f"   {db_path} already contains data, skipping")
        print(f"   {len(dataset.regions())} regions")
        print(f"   {len(dataset.customer_nodes())} customer node allocations")
        print(f"   {len(dataset.transactions())} transactions")
    finally:
        dataset.close()


if __name__ == "__main__":
    main()
