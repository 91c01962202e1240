"""Data factories for generating test data."""

import itertools
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Iterator, List, Optional

from app.security.auth import create_access_token
from app.storage.db import get_session
from app.storage.models import BankTransaction, Category, Member, Partner, User


@dataclass
class ProcurementFactory:
    """Factory for organisations, users and bank rows.

    Each call writes through its own session, committed on return, so the
    rows are visible to the requests a test sends afterwards.
    """

    sequence: Iterator[int] = field(default_factory=lambda: itertools.count(1))

    async def _save(self, row):
        async with get_session() as db:
            db.add(row)
            await db.flush()
        return row

    async def category(self, **overrides: Any) -> Category:
        n = next(self.sequence)
        values = {"code": f"CAT{n:03d}", "name": f"Category {n}", "flow_type": "A"}
        values.update(overrides)
        return await self._save(Category(**values))

    async def member(self, **overrides: Any) -> Member:
        n = next(self.sequence)
        values = {
            "code": f"M{n:03d}",
            "name": f"Member {n}",
            "email": f"member{n}@example.com",
            "payer_name": f"MEMBER {n}",
        }
        values.update(overrides)
        return await self._save(Member(**values))

    async def partner(self, **overrides: Any) -> Partner:
        n = next(self.sequence)
        values = {
            "code": f"P{n:03d}",
            "name": f"Partner {n}",
            "email": f"partner{n}@example.com",
            "bank_name": "Central Bank",
            "bank_branch": "Main",
            "bank_account_type": "ordinary",
            "bank_account_number": f"{n:07d}",
            "bank_account_name": f"PARTNER {n}",
        }
        values.update(overrides)
        return await self._save(Partner(**values))

    async def user(self, role: str = "member", **overrides: Any) -> User:
        n = next(self.sequence)
        values = {
            "email": f"{role}{n}@example.com",
            "name": f"{role.title()} User {n}",
            "role": role,
            "supabase_user_id": f"sb-{role}-{n}",
            "status": "active",
        }
        values.update(overrides)
        return await self._save(User(**values))

    async def bank_transaction(
        self,
        amount: Decimal,
        sender_name: str,
        transaction_date: Optional[datetime] = None,
        **overrides: Any
    ) -> BankTransaction:
        values = {
            "transaction_date": transaction_date or datetime(2025, 8, 20, 9, 0),
            "sender_name": sender_name,
            "amount": amount,
            "matched": False,
        }
        values.update(overrides)
        return await self._save(BankTransaction(**values))

    def headers(self, user: User) -> Dict[str, str]:
        """Bearer headers for ``user``."""
        token = create_access_token(user.supabase_user_id, user.email)
        return {"Authorization": f"Bearer {token}"}


def quote_payload(category_id: int, partner_ids: List[int], **overrides: Any) -> Dict[str, Any]:
    """Quote request with one line per partner."""
    payload = {
        "category_id": category_id,
        "title": "Monthly kitchen supplies",
        "delivery_address": "1-2-3 Harbor Street",
        "items": [
            {"partner_id": pid, "item_name": f"Item for partner {pid}", "quantity": "10", "unit": "box"}
            for pid in partner_ids
        ],
    }
    payload.update(overrides)
    return payload


def order_payload(lines: List[Dict[str, Any]], **overrides: Any) -> Dict[str, Any]:
    """Direct order from ``(partner_id, quantity, unit_price)`` style lines."""
    payload = {
        "delivery_address": "1-2-3 Harbor Street",
        "items": [
            {
                "partner_id": line["partner_id"],
                "item_name": line.get("item_name", "Catalogue item"),
                "quantity": str(line.get("quantity", 1)),
                "unit_price": str(line["unit_price"]),
            }
            for line in lines
        ],
    }
    payload.update(overrides)
    return payload


def transaction_row(amount: str, sender_name: str, day: int = 20) -> Dict[str, Any]:
    return {
        "transaction_date": datetime(2025, 8, day, 9, 0).isoformat(),
        "sender_name": sender_name,
        "amount": amount,
    }
