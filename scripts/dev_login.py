#!/usr/bin/env python3
"""
Generate an access token for any local user, for dev testing.

Usage:
    PYTHONPATH=. python scripts/dev_login.py 1
    PYTHONPATH=. python scripts/dev_login.py alice@test.com
"""

import asyncio
import os
import sys
from datetime import timedelta

project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, project_root)

from sqlalchemy import select
from matchday.database.db import AsyncSessionLocal
from matchday.database.models import User
from matchday.services.auth_service import create_access_token


async def list_users(session):
    """Print available users for reference."""
    print("\n📋 Available users:")
    result = await session.execute(select(User.id, User.name, User.email).order_by(User.id).limit(20))
    for row in result.all():
        print(f"  User #{row[0]:<4}  {row[1]:<20}  {row[2]}")
    print()


async def main(identifier: str = ""):
    """Generate a token for a user by ID or email."""
    async with AsyncSessionLocal() as session:
        if not identifier:
            print("❌ Usage: python scripts/dev_login.py <user id | email>")
            await list_users(session)
            return

        if identifier.isdigit():
            query = select(User).where(User.id == int(identifier))
        else:
            query = select(User).where(User.email == identifier)
        user = (await session.execute(query)).scalar_one_or_none()
        if user is None:
            print(f"❌ User not found: {identifier}")
            await list_users(session)
            return

        token = create_access_token({"user_id": user.id}, expires_delta=timedelta(days=1))
        print(f"✅ Token for {user.name} (#{user.id}), valid 24h:\n")
        print(token)


if __name__ == "__main__":
    asyncio.run(main(sys.argv[1] if len(sys.argv) > 1 else ""))
