#!/usr/bin/env python3
"""
Script to provision an operator for the Dossier Sharing API.

Usage:
    python scripts/create_operator.py --email ops@agency.io --password "s3cret" --master
    python scripts/create_operator.py --email analyst@agency.io --password "s3cret" --name "Analyst"
"""

import asyncio
import argparse
import sys
from pathlib import Path

# Add parent directory to path to import dossier modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from dossier.database import AsyncSessionLocal, init_db, close_db
from dossier.core.exceptions import ConflictException
from dossier.services.operator_service import OperatorService


async def main():
    """Main function."""
    parser = argparse.ArgumentParser(
        description="Create an operator for the Dossier Sharing API"
    )
    parser.add_argument("--email", required=True, help="Login email (required)")
    parser.add_argument("--password", required=True, help="Login password (required)")
    parser.add_argument("--name", default=None, help="Display name (optional)")
    parser.add_argument("--master", action="store_true", help="Grant master role (bypasses section policy)")

    args = parser.parse_args()

    # Schema creation is an explicit step, same as application startup
    await init_db()

    try:
        async with AsyncSessionLocal() as session:
            operator = await OperatorService.create_operator(
                db=session,
                email=args.email,
                password=args.password,
                name=args.name,
                is_master=args.master
            )
    except ConflictException:
        print(f"Operator already exists: {args.email}", file=sys.stderr)
        sys.exit(1)
    finally:
        await close_db()

    print("\n" + "=" * 70)
    print("OPERATOR CREATED SUCCESSFULLY")
    print("=" * 70)
    print(f"ID: {operator.id}")
    print(f"Email: {operator.email}")
    print(f"Name: {operator.name}")
    print(f"Role: {'master' if operator.is_master else 'operator (default section policy)'}")
    print("=" * 70 + "\n")


if __name__ == "__main__":
    asyncio.run(main())
