from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from config import get_settings
from models import BudgetPeriod, TransactionType


class Record(BaseModel):
    # Snapshots arrive with the front-end's camelCase keys; both spellings validate.
    model_config = ConfigDict(frozen=True, populate_by_name=True)


class Category(Record):
    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=100)
    type: TransactionType = TransactionType.expense
    parent_id: Optional[str] = Field(default=None, alias="parentId")
    icon: Optional[str] = None

    @property
    def is_top_level(self) -> bool:
        return not self.parent_id


class Transaction(Record):
    id: str = Field(..., min_length=1)
    type: TransactionType
    amount: Decimal = Field(..., ge=0)
    currency: str = Field(default_factory=lambda: get_settings().currency)
    date: date
    wallet: str
    category: str
    description: str = ""
    event: Optional[str] = None
    exclude_from_reports: bool = Field(default=False, alias="excludeFromReports")

    @property
    def signed_amount(self) -> Decimal:
        if self.type == TransactionType.income:
            return self.amount
        return -self.amount


class Wallet(Record):
    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=100)
    currency: str = Field(default_factory=lambda: get_settings().currency)
    balance: Decimal = Decimal(0)
    is_default: bool = Field(default=False, alias="isDefault")


class Budget(Record):
    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=100)
    category_id: str = Field(..., alias="categoryId")
    amount: Decimal = Field(..., gt=0)
    period: BudgetPeriod = BudgetPeriod.monthly
    start_date: date = Field(..., alias="startDate")
