from datetime import date
from decimal import Decimal

import pytest
from pydantic import ValidationError

from models import BudgetPeriod, TimeRange, TransactionType
from schemas import Budget, Category, Transaction
from services import BudgetService

MID_JULY = date(2024, 7, 15)


def _expense(tid: str, amount: int, day: date, category: str) -> Transaction:
    return Transaction(
        id=tid,
        type=TransactionType.expense,
        amount=Decimal(amount),
        date=day,
        wallet="Cash",
        category=category,
    )


def make_service() -> BudgetService:
    categories = [
        Category(id="1", name="Food"),
        Category(id="2", name="Groceries", parent_id="1"),
        Category(id="3", name="Bakery", parent_id="2"),
        Category(id="20", name="Transport"),
    ]
    transactions = [
        _expense("t1", 120, date(2024, 7, 2), "Groceries"),
        _expense("t2", 30, date(2024, 7, 9), "Bakery"),
        _expense("t3", 50, date(2024, 7, 20), "Food"),
        _expense("t4", 999, date(2024, 6, 30), "Food"),
        _expense("t5", 80, date(2024, 2, 1), "Transport"),
        _expense("t6", 400, date(2024, 11, 3), "Transport"),
        _expense("t7", 60, date(2023, 12, 31), "Transport"),
        Transaction(
            id="t8",
            type=TransactionType.income,
            amount=Decimal(5000),
            date=date(2024, 7, 1),
            wallet="Cash",
            category="Food",
        ),
    ]
    return BudgetService(transactions, categories)


def _budget(bid: str, category_id: str, amount: int, period: BudgetPeriod) -> Budget:
    return Budget(
        id=bid,
        name=f"Budget {bid}",
        category_id=category_id,
        amount=Decimal(amount),
        period=period,
        start_date=date(2024, 1, 1),
    )


def test_monthly_budget_counts_whole_subtree_in_current_month() -> None:
    service = make_service()
    food = _budget("b1", "1", 300, BudgetPeriod.monthly)

    assert service.spent(food, today=MID_JULY) == Decimal(200)


def test_yearly_budget_uses_calendar_year() -> None:
    service = make_service()
    transport = _budget("b2", "20", 400, BudgetPeriod.yearly)

    [row] = service.progress([transport], today=MID_JULY)
    assert row.spent == Decimal(480)
    assert row.period.start == date(2024, 1, 1)
    assert row.is_over
    assert row.remaining == Decimal(-80)


def test_progress_rows() -> None:
    service = make_service()
    budgets = [
        _budget("b1", "1", 300, BudgetPeriod.monthly),
        _budget("b3", "2", 100, BudgetPeriod.monthly),
        _budget("b4", "deleted", 100, BudgetPeriod.monthly),
    ]

    rows = service.progress(budgets, today=MID_JULY)

    assert [r.budget.id for r in rows] == ["b1", "b3", "b4"]
    assert [r.spent for r in rows] == [Decimal(200), Decimal(150), Decimal(0)]
    assert rows[0].remaining == Decimal(100)
    assert rows[0].percent_used == pytest.approx(200 / 300 * 100)
    assert not rows[0].is_over
    assert rows[2].percent_used == 0.0


def test_period_for_budget() -> None:
    assert BudgetService.period_for(
        _budget("b", "1", 1, BudgetPeriod.yearly)
    ).time_range == TimeRange.year
    assert BudgetService.period_for(
        _budget("b", "1", 1, BudgetPeriod.monthly)
    ).time_range == TimeRange.month


def test_budget_accepts_front_end_keys_and_rejects_zero_amount() -> None:
    budget = Budget.model_validate(
        {
            "id": "b1",
            "name": "Food",
            "categoryId": "1",
            "amount": 300,
            "period": "yearly",
            "startDate": "2024-01-01",
        }
    )
    assert budget.period == BudgetPeriod.yearly

    with pytest.raises(ValidationError):
        _budget("b2", "1", 0, BudgetPeriod.monthly)
