# ==== DOCUMENT NUMBERING ==== #

"""
Sequential document numbers for quotes, orders, invoices and bundles.

Numbers are ``{PREFIX}{PERIOD}-{SEQUENCE}`` where the period is the issue
day (quotes, orders) or month (invoices, bundles) and the sequence restarts
every period.
"""

import datetime as dt

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import InstrumentedAttribute

from app.observability.metrics import documents_issued_total


# ==== NUMBER FORMATS ==== #

QUOTE_FORMAT = ("Q", "%Y%m%d", 4)
ORDER_FORMAT = ("O", "%Y%m%d", 4)
INVOICE_FORMAT = ("INV", "%Y%m", 5)
BUNDLE_FORMAT = ("BDL", "%Y%m", 4)


def period_prefix(prefix: str, period_format: str, today: dt.date | None = None) -> str:
    """Build the ``{PREFIX}{PERIOD}-`` part of a document number.

    Args:
        prefix: Document type prefix (e.g. ``INV``)
        period_format: strftime pattern of the numbering period
        today: Issue date, defaults to the current UTC date

    Returns:
        str: Prefix including the trailing dash
    """
    today = today or dt.datetime.now(dt.timezone.utc).date()
    return f"{prefix}{today.strftime(period_format)}-"


def format_document_number(period: str, sequence: int, width: int) -> str:
    return f"{period}{sequence:0{width}d}"


def parse_sequence(number: str | None, period: str) -> int:
    """Extract the running sequence from an existing number of the period."""
    if not number or not number.startswith(period):
        return 0
    suffix = number[len(period):]
    return int(suffix) if suffix.isdigit() else 0


async def next_document_number(
    db: AsyncSession,
    column: InstrumentedAttribute,
    number_format: tuple[str, str, int],
    today: dt.date | None = None,
) -> str:
    """
    Allocate the next document number for the current period.

    Continues from the highest number already issued in the period so that
    deleted documents never cause a number to be handed out twice.

    Args:
        db: Database session
        column: Mapped number column (e.g. ``Quote.quote_number``)
        number_format: One of the ``*_FORMAT`` tuples
        today: Issue date override

    Returns:
        str: Unused document number
    """
    prefix, period_format, width = number_format
    period = period_prefix(prefix, period_format, today)

    # Sequences may outgrow their zero padding, so compare them as integers
    issued = (await db.execute(select(column).where(column.like(f"{period}%")))).scalars()
    current = max((parse_sequence(number, period) for number in issued), default=0)

    documents_issued_total.labels(document_type=prefix).inc()
    return format_document_number(period, current + 1, width)
