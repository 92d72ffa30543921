#!/usr/bin/env python3
"""
Create an admin account in the configured DATABASE_URL and print credentials + JWT.

Admins are never created through the public API; run this once per city.

Optional environment variables:
- ADMIN_USERNAME
- ADMIN_EMAIL
- ADMIN_PASSWORD
- ADMIN_PHONE
- ADMIN_STATE, ADMIN_DISTRICT, ADMIN_CITY

This script uses the same application code (smartcity.identity / smartcity.auth)
so passwords and tokens are created consistently with the running backend.
"""
import asyncio
import os
import secrets

from smartcity.auth import create_access_token
from smartcity.config import get_settings
from smartcity.database import Database
from smartcity.identity import create_user
from smartcity.models import Role


async def main():
    settings = get_settings()
    suffix = secrets.token_hex(4)
    username = os.environ.get("ADMIN_USERNAME", f"admin-{suffix}")
    email = os.environ.get("ADMIN_EMAIL", f"{username}@smartcity.local")
    password = os.environ.get("ADMIN_PASSWORD") or secrets.token_urlsafe(12)
    city = os.environ.get("ADMIN_CITY", "ahmedabad")

    db = Database(settings.database_url)
    await db.init_db()
    try:
        async with db.session_factory() as session:
            admin = await create_user(
                session,
                username=username,
                email=email,
                password=password,
                state=os.environ.get("ADMIN_STATE", "gujarat"),
                district=os.environ.get("ADMIN_DISTRICT", city),
                city=city,
                phone_no=os.environ.get("ADMIN_PHONE", f"000{suffix}"),
                role=Role.ADMIN.value,
            )
            token = create_access_token(settings, subject=admin.id, role=admin.role)
    finally:
        await db.dispose()

    print("ADMIN_CREATED")
    print(f"id: {admin.id}")
    print(f"username: {admin.username}")
    print(f"email: {admin.email}")
    print(f"city: {admin.city}")
    print(f"password: {password}")
    print(f"access_token: {token}")


if __name__ == "__main__":
    asyncio.run(main())
