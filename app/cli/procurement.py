"""CLI commands for Procurement Hub operations."""

import asyncio
import csv
from decimal import Decimal, InvalidOperation
from typing import List

import click
from pydantic import ValidationError
from sqlalchemy import select
from tabulate import tabulate

from app.observability.logging import init_logging
from app.schemas.payment import BankTransactionCreate
from app.security.auth import create_access_token
from app.services import payments as payment_service
from app.settings import settings
from app.storage.db import close_database, create_all, get_session
from app.storage.models import User
from app.storage.seed import seed_demo_data


def _run(coro) -> None:
    """Run a coroutine and dispose of the engine afterwards."""
    async def runner():
        try:
            await coro
        finally:
            await close_database()

    asyncio.run(runner())


def read_bank_csv(path: str) -> List[BankTransactionCreate]:
    """
    Parse a bank statement export.

    The file needs ``transaction_date``, ``sender_name`` and ``amount``
    columns; ``sender_name_kana``, ``balance`` and ``description`` are
    optional. Amounts may carry thousands separators.

    Raises:
        click.ClickException: If a row cannot be parsed
    """
    rows: List[BankTransactionCreate] = []
    with open(path, newline="", encoding="utf-8-sig") as handle:
        for line_no, record in enumerate(csv.DictReader(handle), start=2):
            try:
                values = {key: (value or "").strip() for key, value in record.items() if key}
                values["amount"] = Decimal(values["amount"].replace(",", ""))
                if values.get("balance"):
                    values["balance"] = Decimal(values["balance"].replace(",", ""))
                else:
                    values.pop("balance", None)
                rows.append(BankTransactionCreate(**{k: v for k, v in values.items() if v != ""}))
            except (KeyError, InvalidOperation, ValidationError) as exc:
                raise click.ClickException(f"Line {line_no}: cannot parse row ({exc})")
    return rows


@click.group()
def procurement():
    """Procurement Hub management commands."""
    init_logging(settings.LOG_LEVEL, None)


@procurement.command("init-db")
def init_db():
    """Create every table in the configured database."""
    _run(create_all())
    click.echo("✅ Database schema created")


@procurement.command()
def seed():
    """Load demo organisations, catalogue and users."""
    _run(seed_demo_data())
    click.echo("✅ Demo data loaded")


@procurement.command("import-bank-csv")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
def import_bank_csv(path: str):
    """Import a bank statement CSV, skipping rows already stored."""
    rows = read_bank_csv(path)

    async def run():
        async with get_session() as db:
            created, skipped = await payment_service.import_bank_transactions(db, rows)
        click.echo(tabulate(
            [["rows", len(rows)], ["imported", created], ["skipped", skipped]],
            headers=["Result", "Count"],
            tablefmt="grid"
        ))

    _run(run())


@procurement.command("auto-match")
def auto_match():
    """Match unmatched bank transactions against unpaid bundles and invoices."""
    async def run():
        async with get_session() as db:
            result = await payment_service.auto_match(db)
        click.echo(f"✅ {result['message']}")
        click.echo(tabulate(
            [["unmatched transactions", result["total"]], ["matched", result["matched"]]],
            headers=["Result", "Count"],
            tablefmt="grid"
        ))

    _run(run())


@procurement.command("issue-token")
@click.argument("email")
@click.option("--hours", default=24, show_default=True, help="Token lifetime in hours")
def issue_token(email: str, hours: int):
    """Mint an access token for a registered user."""
    async def run():
        async with get_session() as db:
            user = (await db.execute(select(User).where(User.email == email))).scalar_one_or_none()
        if user is None:
            raise click.ClickException(f"No user with email {email}")
        if not user.supabase_user_id:
            raise click.ClickException(f"User {email} has no identity provider id")
        click.echo(create_access_token(user.supabase_user_id, user.email, expires_in_hours=hours))

    _run(run())
