#!/usr/bin/env python
# ============================================================================
# SCHEMA DEPLOYMENT SCRIPT
# ============================================================================
# EPOCH: 1 - SPOT PROVISIONING
# PURPOSE: Deploy the spotrunner schema to PostgreSQL
# USAGE:
#   python scripts/deploy_schema.py --dry-run    # Preview SQL
#   python scripts/deploy_schema.py              # Execute deployment
#   python scripts/deploy_schema.py --status     # Check current status
# ============================================================================

import sys
import os
import argparse
import logging

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from infrastructure import DatabaseInitializer
from repositories.base import PostgresRepository


def main():
    parser = argparse.ArgumentParser(
        description="Deploy the spotrunner schema to PostgreSQL",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/deploy_schema.py --dry-run     # Preview DDL without executing
  python scripts/deploy_schema.py               # Deploy schema
  python scripts/deploy_schema.py --status      # Check current installation

Environment Variables:
  SPOT_DB_URL           Full PostgreSQL connection string
  SPOT_DB_HOST          Database host (default: localhost)
  SPOT_DB_NAME          Database name (default: postgres)
  SPOT_DB_USER          Database user (default: postgres)
  SPOT_DB_PASSWORD      Database password
  SPOT_DB_PORT          Database port (default: 5432)
  SPOT_DB_SCHEMA        Schema name (default: spotrunner)
        """
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print DDL without executing"
    )
    parser.add_argument(
        "--status",
        action="store_true",
        help="List existing tables and exit"
    )
    parser.add_argument(
        "--connection",
        type=str,
        help="PostgreSQL connection string (overrides environment)"
    )
    parser.add_argument(
        "--schema",
        type=str,
        help="Schema name (overrides SPOT_DB_SCHEMA)"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging"
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    repo = PostgresRepository(conn_string=args.connection, schema=args.schema)
    initializer = DatabaseInitializer(repo=repo)

    print("=" * 70)
    print("SPOT RUNNER - Schema Deployment")
    print(f"Schema: {initializer.schema}")
    print("=" * 70)

    if args.status:
        print("\n[STATUS CHECK]\n")
        tables = initializer.get_existing_tables()
        missing = [t for t in DatabaseInitializer.EXPECTED_TABLES if t not in tables]
        print(f"Tables ({len(tables)}):")
        for table in tables:
            print(f"  - {initializer.schema}.{table}")
        if missing:
            print(f"\nMissing: {', '.join(missing)}")
            sys.exit(1)
        print("\n" + "=" * 70)
        return

    print(f"\nMode: {'DRY RUN' if args.dry_run else 'EXECUTE'}\n")

    result = initializer.initialize_all(dry_run=args.dry_run)

    print("\n[RESULTS]\n")
    for step in result.steps:
        marker = {
            "success": "[OK]  ",
            "failed": "[FAIL]",
            "skipped": "[SKIP]",
        }.get(step.status, "[??]  ")

        print(f"{marker} {step.name}: {step.message}")
        if step.error:
            print(f"   Error: {step.error}")
        if step.details and args.verbose:
            for key, value in step.details.items():
                print(f"   {key}: {value}")

    print("\n" + "=" * 70)
    if result.success:
        print("Deployment completed successfully")
    else:
        print("Deployment failed")
        for error in result.errors:
            print(f"   - {error}")
        sys.exit(1)
    print("=" * 70)


if __name__ == "__main__":
    main()
