from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from rapidfuzz.distance import Levenshtein

from models import BudgetPeriod, TimeRange, TransactionType
from periods import Period, PeriodSelector, label, prior_period, resolve
from rollup import CategoryTotal, CategoryTree
from schemas import Budget, Category, Transaction, Wallet

logger = logging.getLogger(__name__)


class CategoryNotFound(LookupError):
    pass


def _sum(values: Iterable[Decimal]) -> Decimal:
    return sum(values, Decimal(0))


def net_amount(transactions: Iterable[Transaction]) -> Decimal:
    return _sum(t.signed_amount for t in transactions)


def total_of_type(
    transactions: Iterable[Transaction], transaction_type: TransactionType
) -> Decimal:
    return _sum(t.amount for t in transactions if t.type == transaction_type)


@dataclass(frozen=True)
class PeriodSummary:
    """Totals for one resolved period.

    ``opening_balance`` counts every transaction before the period start,
    including ones flagged ``exclude_from_reports``; the in-period totals skip
    flagged transactions. A flagged transaction therefore makes one period's
    ``ending_balance`` differ from the next period's ``opening_balance``.
    """

    period: Period
    label: str
    opening_balance: Decimal
    total_income: Decimal
    total_expense: Decimal
    net_income: Decimal
    ending_balance: Decimal
    expense_ratio: float
    transactions_in_period: list[Transaction] = field(default_factory=list)
    category_breakdown: list[CategoryTotal] = field(default_factory=list)


@dataclass(frozen=True)
class CategoryDetail:
    category: Category
    period: Period
    total: Decimal
    daily_average: Decimal
    subcategories: list[CategoryTotal]
    direct_children: list[Category]
    breadcrumbs: list[Category]
    transactions: list[Transaction]


@dataclass(frozen=True)
class EventSummary:
    """Expense spending tagged with one event, across all dates."""

    event: str
    total: Decimal
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    transactions: list[Transaction] = field(default_factory=list)


class ReportService:
    def __init__(
        self,
        transactions: Iterable[Transaction],
        categories: Iterable[Category],
        wallets: Iterable[Wallet],
    ) -> None:
        self.transactions: tuple[Transaction, ...] = tuple(transactions)
        self.tree = CategoryTree(categories)
        self.wallets: tuple[Wallet, ...] = tuple(wallets)

    def wallet_names(self, wallet_ids: Optional[Iterable[str]] = None) -> Optional[set[str]]:
        if wallet_ids is None:
            return None
        selected = set(wallet_ids)
        return {w.name for w in self.wallets if w.id in selected}

    def _for_wallets(self, wallet_ids: Optional[Iterable[str]]) -> list[Transaction]:
        names = self.wallet_names(wallet_ids)
        if names is None:
            return list(self.transactions)
        return [t for t in self.transactions if t.wallet in names]

    def summary(
        self,
        selector: PeriodSelector,
        wallet_ids: Optional[Iterable[str]] = None,
        *,
        today: Optional[date] = None,
    ) -> PeriodSummary:
        period = resolve(selector, today=today)
        candidates = self._for_wallets(wallet_ids)

        in_period = [
            t
            for t in candidates
            if period.contains(t.date) and not t.exclude_from_reports
        ]
        in_period.sort(key=lambda t: t.date, reverse=True)
        opening_balance = net_amount(t for t in candidates if period.is_before(t.date))

        total_income = total_of_type(in_period, TransactionType.income)
        total_expense = total_of_type(in_period, TransactionType.expense)
        net_income = total_income - total_expense
        expense_ratio = (
            float(total_expense / total_income * 100) if total_income > 0 else 0.0
        )

        logger.info(
            "period_summary: period=%s start=%s end=%s transactions=%d",
            period.slug,
            period.start.isoformat(),
            period.end.isoformat() if period.end else "open",
            len(in_period),
        )
        return PeriodSummary(
            period=period,
            label=label(selector, today=today),
            opening_balance=opening_balance,
            total_income=total_income,
            total_expense=total_expense,
            net_income=net_income,
            ending_balance=opening_balance + net_income,
            expense_ratio=expense_ratio,
            transactions_in_period=in_period,
            category_breakdown=self.tree.aggregate(in_period),
        )

    def category_detail(
        self,
        category_id: str,
        selector: PeriodSelector,
        wallet_ids: Optional[Iterable[str]] = None,
        *,
        subcategory: Optional[str] = None,
        today: Optional[date] = None,
    ) -> CategoryDetail:
        category = self.tree.get(category_id)
        if category is None:
            raise CategoryNotFound(f"Category {category_id} not found")

        period = resolve(selector, today=today)
        names = self.tree.descendant_names(category_id)
        matched = [
            t
            for t in self._for_wallets(wallet_ids)
            if t.type == TransactionType.expense
            and t.category in names
            and period.contains(t.date)
            and not t.exclude_from_reports
        ]
        matched.sort(key=lambda t: t.date, reverse=True)
        total = _sum(t.amount for t in matched)

        if TimeRange(selector.time_range) == TimeRange.all:
            days = (matched[0].date - matched[-1].date).days + 1 if matched else 0
        else:
            days = period.days
        daily_average = total / days if days > 0 else Decimal(0)

        direct_children = self.tree.children(category_id)
        subcategories = self.tree.aggregate(matched, direct_children)

        listed = matched
        if subcategory:
            sub = self.tree.by_name(subcategory)
            sub_names = self.tree.descendant_names(sub.id) if sub else frozenset()
            listed = [t for t in matched if t.category in sub_names]

        return CategoryDetail(
            category=category,
            period=period,
            total=total,
            daily_average=daily_average,
            subcategories=subcategories,
            direct_children=direct_children,
            breadcrumbs=self.tree.lineage(category_id),
            transactions=listed,
        )

    def category_deltas(
        self,
        selector: PeriodSelector,
        wallet_ids: Optional[Iterable[str]] = None,
        *,
        limit: int = 8,
        today: Optional[date] = None,
    ) -> dict[str, list[dict[str, object]]]:
        current = resolve(selector, today=today)
        previous = prior_period(selector, today=today)
        candidates = self._for_wallets(wallet_ids)

        def totals_for(p: Period) -> dict[str, Decimal]:
            in_window = [t for t in candidates if p.contains(t.date)]
            return {row.category_id: row.total for row in self.tree.aggregate(in_window)}

        cur_totals = totals_for(current)
        prev_totals = totals_for(previous)
        all_category_ids = set(cur_totals) | set(prev_totals)
        if not all_category_ids:
            return {"increases": [], "decreases": []}

        deltas: list[dict[str, object]] = []
        for category in self.tree.top_level(TransactionType.expense):
            if category.id not in all_category_ids:
                continue
            cur = cur_totals.get(category.id, Decimal(0))
            prev_amount = prev_totals.get(category.id, Decimal(0))
            deltas.append(
                {
                    "category_id": category.id,
                    "category_name": category.name,
                    "current": cur,
                    "previous": prev_amount,
                    "delta": cur - prev_amount,
                }
            )

        increases = sorted(deltas, key=lambda r: r["delta"], reverse=True)[:limit]
        decreases = sorted(deltas, key=lambda r: r["delta"])[:limit]
        return {"increases": increases, "decreases": decreases}

    def event_summary(
        self, event: str, wallet_ids: Optional[Iterable[str]] = None
    ) -> EventSummary:
        matched = [
            t
            for t in self._for_wallets(wallet_ids)
            if t.event == event and t.type == TransactionType.expense
        ]
        matched.sort(key=lambda t: t.date, reverse=True)
        if not matched:
            return EventSummary(event=event, total=Decimal(0))
        return EventSummary(
            event=event,
            total=_sum(t.amount for t in matched),
            start_date=matched[-1].date,
            end_date=matched[0].date,
            transactions=matched,
        )


@dataclass(frozen=True)
class BudgetProgress:
    budget: Budget
    period: Period
    budgeted: Decimal
    spent: Decimal

    @property
    def remaining(self) -> Decimal:
        return self.budgeted - self.spent

    @property
    def percent_used(self) -> float:
        return float(self.spent / self.budgeted * 100) if self.budgeted else 0.0

    @property
    def is_over(self) -> bool:
        return self.spent > self.budgeted


class BudgetService:
    def __init__(
        self,
        transactions: Iterable[Transaction],
        categories: Iterable[Category],
    ) -> None:
        self.transactions: tuple[Transaction, ...] = tuple(transactions)
        self.tree = CategoryTree(categories)

    @staticmethod
    def period_for(budget: Budget) -> PeriodSelector:
        if budget.period == BudgetPeriod.yearly:
            return PeriodSelector(TimeRange.year)
        return PeriodSelector(TimeRange.month)

    def spent(self, budget: Budget, *, today: Optional[date] = None) -> Decimal:
        period = resolve(self.period_for(budget), today=today)
        return self._spent_in(budget, period)

    def _spent_in(self, budget: Budget, period: Period) -> Decimal:
        names = self.tree.descendant_names(budget.category_id)
        if not names:
            return Decimal(0)
        return _sum(
            t.amount
            for t in self.transactions
            if t.type == TransactionType.expense
            and t.category in names
            and period.contains(t.date)
        )

    def progress(
        self, budgets: Iterable[Budget], *, today: Optional[date] = None
    ) -> list[BudgetProgress]:
        rows: list[BudgetProgress] = []
        for budget in budgets:
            period = resolve(self.period_for(budget), today=today)
            rows.append(
                BudgetProgress(
                    budget=budget,
                    period=period,
                    budgeted=budget.amount,
                    spent=self._spent_in(budget, period),
                )
            )
        return rows


@dataclass(frozen=True)
class DanglingReference:
    transaction_id: str
    kind: str  # "category" | "wallet"
    value: str
    suggestion: Optional[str] = None


class ReferenceService:
    """Finds transactions whose category or wallet name matches nothing.

    Such transactions are left out of every rollup; this only reports them,
    with the closest known name when one is unambiguous.
    """

    max_distance = 2

    def __init__(
        self,
        transactions: Iterable[Transaction],
        categories: Iterable[Category],
        wallets: Iterable[Wallet],
    ) -> None:
        self.transactions: tuple[Transaction, ...] = tuple(transactions)
        self.category_names = sorted({c.name for c in categories})
        self.wallet_names = sorted({w.name for w in wallets})

    def suggest(self, value: str, known: list[str]) -> Optional[str]:
        input_lower = value.strip().lower()
        best_distance: Optional[int] = None
        best: list[str] = []
        for name in known:
            dist = int(Levenshtein.distance(input_lower, name.strip().lower()))
            if best_distance is None or dist < best_distance:
                best_distance = dist
                best = [name]
            elif dist == best_distance:
                best.append(name)
        if best_distance is None or best_distance > self.max_distance or len(best) > 1:
            return None
        return best[0]

    def dangling(self) -> list[DanglingReference]:
        known_categories = set(self.category_names)
        known_wallets = set(self.wallet_names)
        found: list[DanglingReference] = []
        for txn in self.transactions:
            if txn.category not in known_categories:
                found.append(
                    DanglingReference(
                        txn.id,
                        "category",
                        txn.category,
                        self.suggest(txn.category, self.category_names),
                    )
                )
            if txn.wallet not in known_wallets:
                found.append(
                    DanglingReference(
                        txn.id,
                        "wallet",
                        txn.wallet,
                        self.suggest(txn.wallet, self.wallet_names),
                    )
                )
        if found:
            logger.warning("dangling_references: count=%d", len(found))
        return found
