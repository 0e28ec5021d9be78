"""
Database seeding script for demo clients.

Creates a few clients with work transactions for development.
Works go through the transaction store, so balances and the balance
history are populated exactly as the API would populate them.
"""

import asyncio
import sys
from datetime import date
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from backend.app.db.session import AsyncSessionLocal, engine, Base
from backend.app.models.client import Client
from backend.app.schemas.client import ClientCreate
from backend.app.schemas.work import WorkCreate
from backend.app.services import client_service, work_store
from sqlalchemy import select

DEMO_CLIENTS = [
    {
        "client": {
            "name": "Ramesh Ghosh",
            "phone": "9876543210",
            "email": "ramesh.ghosh@example.com",
            "address": "12 Lake Road, Kolkata 700029",
            "pan_number": "ABCDE1234F",
            "usual_work_types": ["income-tax", "p-tax"],
        },
        "works": [
            (150000, 150000, ["income-tax"], "ITR filing for AY 2025-26", date(2025, 7, 15)),
            (50000, 0, ["p-tax"], "Professional tax enrolment", date(2025, 8, 2)),
        ],
    },
    {
        "client": {
            "name": "Sunita Das",
            "phone": "9123456780",
            "address": "4 Station Road, Howrah 711101",
            "usual_work_types": ["life-insurance", "health-insurance"],
        },
        "works": [
            (2500000, 1000000, ["life-insurance"], "LIC premium payment", date(2025, 5, 20)),
            (1200000, 1500000, ["health-insurance"], "Family floater renewal", date(2025, 6, 1)),
        ],
    },
    {
        "client": {
            "name": "Anil Kumar",
            "phone": "9988776655",
            "address": "88 MG Road, Bengaluru 560001",
            "usual_work_types": ["mutual-funds"],
        },
        "works": [
            (30000, 0, ["mutual-funds", "online-work"], "SIP registration and KYC", date(2025, 9, 10)),
        ],
    },
]


async def seed_clients():
    """
    Seed demo clients and their work transactions.

    Skips seeding if the first demo client is already registered.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as db:
        print("🌱 Starting client seeding...")

        result = await db.execute(
            select(Client).where(Client.phone == DEMO_CLIENTS[0]["client"]["phone"])
        )
        if result.scalar_one_or_none():
            print("ℹ️  Demo clients already exist, skipping seeding")
            return

        for demo in DEMO_CLIENTS:
            client = await client_service.create_client(db, ClientCreate(**demo["client"]))
            for total_price, paid_amount, work_types, description, transaction_date in demo["works"]:
                await work_store.create_work(db, WorkCreate(
                    client_id=client.id,
                    total_price=total_price,
                    paid_amount=paid_amount,
                    work_types=work_types,
                    description=description,
                    transaction_date=transaction_date,
                ))
            client = await client_service.get_client(db, client.id)
            print(f"✅ Created client {client.name} (balance: {client.balance})")

        print("\n🎉 Client seeding completed successfully!")


if __name__ == "__main__":
    asyncio.run(seed_clients())
