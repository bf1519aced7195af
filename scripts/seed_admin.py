"""Create the first admin account. Admins cannot self-register."""

from __future__ import annotations

import argparse
import asyncio
import getpass

from carmarket.db.session import get_sessionmaker
from carmarket.services import auth_service


async def seed_admin(name: str, email: str, password: str) -> None:
    sessionmaker = get_sessionmaker()
    async with sessionmaker() as session:
        user = await auth_service.bootstrap_admin(
            session, name=name, email=email, password=password
        )
        print(f"Admin {user.email} ready (role={user.role.value})")


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--email", required=True)
    parser.add_argument("--name", default="Marketplace Admin")
    parser.add_argument("--password", help="prompted when omitted")
    args = parser.parse_args()
    password = args.password or getpass.getpass("Admin password: ")
    asyncio.run(seed_admin(args.name, args.email, password))


if __name__ == "__main__":
    main()
