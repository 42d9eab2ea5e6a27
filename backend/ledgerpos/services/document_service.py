# Overview: Service-layer operations for document numbering; encapsulates the atomic counter.

from __future__ import annotations

from sqlalchemy import Integer, cast, func, select, update
from sqlalchemy.exc import IntegrityError

from ..errors import DocumentSequenceError
from ..extensions import db
from ..models import DocumentSequence, Sale


def _max_existing_suffix(tenant_id: int, prefix: str) -> int:
    """Highest numeric suffix among the tenant's sale numbers with this prefix."""
    suffix = func.substr(Sale.sale_number, len(prefix) + 2)
    value = db.session.execute(
        select(func.max(cast(suffix, Integer))).where(
            Sale.tenant_id == tenant_id,
            Sale.sale_number.like(f"{prefix}-%"),
        )
    ).scalar()
    return int(value or 0)


def next_document_number(*, tenant_id: int, prefix: str, pad: int = 6) -> str:
    """
    Allocate the next document number for a tenant/prefix (e.g. "SALE-000124").

    Runs inside the caller's transaction and does not commit: if the caller
    rolls back, the number is released with it. The UPDATE on the counter row
    takes a row lock, so concurrent posters serialize on it instead of
    computing the same MAX+1.

    The counter row is created on first use, seeded from the highest number
    already issued so existing data keeps a contiguous series.
    """
    if not tenant_id:
        raise DocumentSequenceError("tenant_id is required")
    if not prefix:
        raise DocumentSequenceError("prefix is required")

    bump = (
        update(DocumentSequence)
        .where(
            DocumentSequence.tenant_id == tenant_id,
            DocumentSequence.prefix == prefix,
        )
        .values(next_number=DocumentSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )

    result = db.session.execute(bump)
    if not result.rowcount:
        seed = _max_existing_suffix(tenant_id, prefix) + 1
        try:
            with db.session.begin_nested():
                db.session.add(DocumentSequence(tenant_id=tenant_id, prefix=prefix, next_number=seed))
        except IntegrityError:
            # Another transaction created the row first; its counter is authoritative.
            pass
        result = db.session.execute(bump)
        if not result.rowcount:
            raise DocumentSequenceError(f"Could not allocate a number for {prefix}")

    current = db.session.execute(
        select(DocumentSequence.next_number).where(
            DocumentSequence.tenant_id == tenant_id,
            DocumentSequence.prefix == prefix,
        )
    ).scalar_one()

    return f"{prefix}-{current - 1:0{pad}d}"
