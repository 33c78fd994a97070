from enum import Enum


class TransactionType(str, Enum):
    income = "income"
    expense = "expense"


class TimeRange(str, Enum):
    day = "day"
    week = "week"
    month = "month"
    year = "year"
    all = "all"
    custom = "custom"


class BudgetPeriod(str, Enum):
    monthly = "monthly"
    yearly = "yearly"
