"""
Worker payroll reconciliation.

Pure functions that merge salary lines, raw production work and advances into
one chronological feed without showing work twice. Nothing here touches the
session; the payroll services fetch rows and hand them in.

Dedup rule: every salary line "consumes" one production row with the same
(worker, operation, day). The match is a counting one, so N salary lines hide
at most N production rows for a key. Pieces and amount are not
part of the key: a production row edited after it was paid will still be
matched by day and operation alone.
"""
import re
from collections import Counter, OrderedDict
from datetime import date
from decimal import Decimal
from typing import Any, Callable, Dict, Hashable, Iterable, List, Optional, Sequence, Tuple

from app.core.config import settings
from app.core.periods import normalize_day
from app.schemas.worker_payroll import (
    AdvanceEntry,
    OperationLine,
    ProductionEntry,
    SalaryEntry,
    WorkerMonthlySummary,
)

_UUID_PATTERN = re.compile(
    r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[1-5][0-9a-fA-F]{3}-[89abAB][0-9a-fA-F]{3}-[0-9a-fA-F]{12}$"
)

DedupKey = Tuple[Hashable, ...]
KeyBuilder = Callable[[Optional[str], Optional[str], Any], Optional[DedupKey]]

ZERO = Decimal("0")


def is_uuid(value: Any) -> bool:
    return isinstance(value, str) and bool(_UUID_PATTERN.match(value))


def as_decimal(value: Any) -> Decimal:
    if value is None or value == "":
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def build_lookup(rows: Iterable[Any]) -> Dict[str, Any]:
    """Index rows by id; rows without one are ignored."""
    return {row.id: row for row in rows if row is not None and getattr(row, "id", None)}


def worker_key(worker_id: Optional[str], operation_id: Optional[str], day: Any) -> Optional[DedupKey]:
    """(worker, operation, day) key used across all workers."""
    normalized = normalize_day(day)
    if not worker_id or not operation_id or normalized is None:
        return None
    return (worker_id, operation_id, normalized)


def scoped_key(worker_id: Optional[str], operation_id: Optional[str], day: Any) -> Optional[DedupKey]:
    """(operation, day) key for feeds already filtered to a single worker."""
    normalized = normalize_day(day)
    if not operation_id or normalized is None:
        return None
    return (operation_id, normalized)


def count_paid_keys(salary_rows: Iterable[Any], key: KeyBuilder = worker_key) -> Counter:
    """Multiset of dedup keys, one count per salary line."""
    counts: Counter = Counter()
    for row in salary_rows:
        k = key(row.worker_id, row.operation_id, row.date)
        if k is not None:
            counts[k] += 1
    return counts


def suppress_consumed_production(
    production_rows: Sequence[Any],
    paid_counts: Counter,
    key: KeyBuilder = worker_key,
) -> List[Any]:
    """
    Drop production rows already represented by a salary line.

    Rows with an incomplete key are always kept. `paid_counts` is consumed
    in place, in the order of `production_rows`.
    """
    surviving = []
    for row in production_rows:
        k = key(row.worker_id, row.operation_id, row.date)
        if k is None:
            surviving.append(row)
            continue
        if paid_counts[k] > 0:
            paid_counts[k] -= 1
            continue
        surviving.append(row)
    return surviving


def _name(lookup: Dict[str, Any], entity_id: Optional[str]) -> Optional[str]:
    entity = lookup.get(entity_id) if entity_id else None
    return getattr(entity, "name", None) if entity is not None else None


def salary_to_entry(
    row: Any,
    workers: Dict[str, Any],
    products: Dict[str, Any],
    operations: Dict[str, Any],
) -> SalaryEntry:
    rate = as_decimal(row.amount_per_piece)
    if rate == ZERO and row.operation_id in operations:
        rate = as_decimal(operations[row.operation_id].amount_per_piece)
    return SalaryEntry(
        id=str(row.id),
        worker_id=row.worker_id,
        worker_name=_name(workers, row.worker_id),
        product_id=row.product_id,
        product_name=_name(products, row.product_id),
        operation_id=row.operation_id,
        operation_name=_name(operations, row.operation_id),
        date=normalize_day(row.date) or date.today(),
        pieces_done=int(row.pieces_done or 0),
        amount_per_piece=rate,
        total_amount=as_decimal(row.total_amount),
        paid=bool(row.paid),
        paid_date=row.paid_date,
        paid_by=row.paid_by,
        entered_by=row.entered_by,
    )


def production_to_entry(row: Any, workers: Dict[str, Any]) -> ProductionEntry:
    """Map a production row (with its operation/production relations loaded) to a pending entry."""
    operation = row.operation
    production = row.production
    product = production.product if production is not None else None
    rate = as_decimal(operation.amount_per_piece) if operation is not None else ZERO
    pieces = int(row.pieces_done or 0)
    total = as_decimal(row.earnings) if row.earnings is not None else rate * pieces
    return ProductionEntry(
        id=str(row.id),
        worker_id=row.worker_id,
        worker_name=_name(workers, row.worker_id) or row.worker_name,
        product_id=production.product_id if production is not None else None,
        product_name=product.name if product is not None else settings.payroll.unknown_product,
        operation_id=operation.id if operation is not None else row.operation_id,
        operation_name=operation.name if operation is not None else settings.payroll.unknown_operation,
        date=normalize_day(row.date) or date.today(),
        pieces_done=pieces,
        amount_per_piece=rate,
        total_amount=total,
        paid=False,
        entered_by=row.entered_by,
        production_id=row.production_id,
    )


def advance_to_entry(row: Any, workers: Dict[str, Any]) -> AdvanceEntry:
    return AdvanceEntry(
        id=str(row.id),
        worker_id=row.worker_id,
        worker_name=_name(workers, row.worker_id),
        product_name=settings.payroll.advance_label,
        operation_name=row.note or settings.payroll.default_advance_note,
        date=normalize_day(row.date) or date.today(),
        pieces_done=0,
        amount_per_piece=ZERO,
        total_amount=-abs(as_decimal(row.amount)),
        paid=False,
        note=row.note,
    )


def sort_feed(entries: List[Any]) -> List[Any]:
    """Most recent first; equal days keep their relative order."""
    return sorted(entries, key=lambda e: e.date, reverse=True)


def reconcile_worker_ledger(
    salary_rows: Sequence[Any],
    production_rows: Sequence[Any],
    advance_rows: Sequence[Any],
    workers: Optional[Dict[str, Any]] = None,
    products: Optional[Dict[str, Any]] = None,
    operations: Optional[Dict[str, Any]] = None,
    key: KeyBuilder = worker_key,
) -> List[Any]:
    """Build the unified, deduplicated, date-descending feed."""
    workers = workers or {}
    products = products or {}
    operations = operations or {}

    paid_counts = count_paid_keys(salary_rows, key)
    pending = suppress_consumed_production(production_rows, paid_counts, key)

    feed: List[Any] = [salary_to_entry(r, workers, products, operations) for r in salary_rows]
    feed.extend(production_to_entry(r, workers) for r in pending)
    feed.extend(advance_to_entry(r, workers) for r in advance_rows)
    return sort_feed(feed)


def filter_month(entries: Iterable[Any], month: int, year: int) -> List[Any]:
    return [e for e in entries if e.date.month == month and e.date.year == year]


def aggregate_by_worker(entries: Iterable[Any]) -> List[WorkerMonthlySummary]:
    """
    Per-worker totals over an already month-filtered feed.

    `total_amount` is net (advances subtract), `total_advance` sums advance
    magnitudes, and `paid` holds only if every contributing entry is paid.
    """
    summaries: "OrderedDict[Optional[str], WorkerMonthlySummary]" = OrderedDict()
    for entry in entries:
        summary = summaries.get(entry.worker_id)
        if summary is None:
            summary = WorkerMonthlySummary(
                worker_id=entry.worker_id,
                worker_name=entry.worker_name or settings.payroll.unknown_worker,
            )
            summaries[entry.worker_id] = summary

        summary.total_pieces += entry.pieces_done
        summary.total_amount += entry.total_amount
        if entry.total_amount < ZERO:
            summary.total_advance += abs(entry.total_amount)
        summary.paid = summary.paid and entry.paid
        summary.operations.append(OperationLine(
            source=entry.source,
            product_id=entry.product_id,
            product_name=entry.product_name or settings.payroll.unknown_product,
            operation_id=entry.operation_id,
            operation_name=entry.operation_name or settings.payroll.unknown_operation,
            pieces_done=entry.pieces_done,
            amount=entry.total_amount,
        ))
    return list(summaries.values())
