#!/usr/bin/env python3
"""
Data Bank Reporting Entry Point

Runs the built-in reports against a SQLite Data Bank database and prints them.
"""

import argparse
import json
import sys
from pathlib import Path

# Add the project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from data_bank.config import get_config
from data_bank.logging_config import setup_logging
from data_bank.reporting import ReportingEngine, ReportFormat
from data_bank.storage import SQLiteDataset


def parse_args(argv=None):
    config = get_config()
    parser = argparse.ArgumentParser(description="Data Bank analytical reports")
    parser.add_argument("db_path", nargs="?", default=config.database_path,
                        help="SQLite database holding regions, customer_nodes and customer_transactions")
    parser.add_argument("--report", help="Report id to run (default: all reports)")
    parser.add_argument("--format", choices=[f.value for f in ReportFormat if f != ReportFormat.DICT],
                        default=ReportFormat.JSON.value)
    parser.add_argument("--allocations",
                        help="JSON file mapping customer_id to initial data allocation")
    parser.add_argument("--days", type=int,
                        help="Also project daily-accrued interest over this many days")
    parser.add_argument("--list", action="store_true", help="List available reports and exit")
    return parser.parse_args(argv)


def load_allocations(path):
    with open(path) as handle:
        raw = json.load(handle)
    return {int(customer_id): amount for customer_id, amount in raw.items()}


def main(argv=None) -> int:
    config = get_config()
    args = parse_args(argv)
    setup_logging(config.log_level, log_format=config.log_format, log_file=config.log_file)
    
    if not args.list and not Path(args.db_path).exists():
        print(f"Database not found: {args.db_path}", file=sys.stderr)
        return 1
    
    dataset = SQLiteDataset(args.db_path if not args.list else ":memory:")
    try:
        engine = ReportingEngine(dataset, config)
        
        if args.list:
            for definition in engine.list_report_definitions():
                print(f"{definition.id:45} {definition.description}")
            return 0
        
        allocations = load_allocations(args.allocations) if args.allocations else None
        export_format = ReportFormat(args.format)
        
        if args.report:
            params = {'allocations': allocations, 'days': args.days} if allocations is not None else {}
            results = {args.report: engine.run_report(args.report, **params)}
        else:
            results = engine.run_all(allocations, args.days)
        
        for report_id, result in results.items():
            if export_format == ReportFormat.CSV:
                print(f"# {report_id}")
            print(engine.export_report(result, export_format))
        return 0
    finally:
        dataset.close()


if __name__ == "__main__":
    try:
        sys.exit(main())
    except ValueError as e:
        print(f"❌ {e}", file=sys.stderr)
        sys.exit(1)
