"""Report (and optionally repair) drift between payments and vehicle status."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from carmarket.db.session import dispose_engine, get_sessionmaker
from carmarket.services import consistency_service


async def run(*, apply: bool) -> int:
    sessionmaker = get_sessionmaker()
    try:
        async with sessionmaker() as session:
            findings = await consistency_service.scan(session, apply=apply)
    finally:
        await dispose_engine()

    if not findings:
        print("No inconsistencies found.")
        return 0
    for finding in findings:
        state = "fixed" if finding.fixed else "open"
        print(
            f"[{state}] {finding.kind} vehicle={finding.vehicle_id} "
            f"transaction={finding.transaction_id}: {finding.detail}"
        )
    print(f"{len(findings)} finding(s).")
    return 0 if apply else 1


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--apply", action="store_true", help="repair findings in a single commit"
    )
    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO)
    sys.exit(asyncio.run(run(apply=args.apply)))


if __name__ == "__main__":
    main()
