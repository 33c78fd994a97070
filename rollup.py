import logging
from collections import deque
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from models import TransactionType
from schemas import Category, Transaction

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CategoryTotal:
    category_id: str
    name: str
    total: Decimal
    percent: float = 0.0


class CategoryTree:
    """Index over a flat parent-pointer category list.

    The tree is built from an immutable snapshot; descendant closures are
    cached per id for the lifetime of the instance. A changed category list
    means a new tree.
    """

    def __init__(self, categories: Iterable[Category]) -> None:
        self.categories: tuple[Category, ...] = tuple(categories)
        self._by_id: dict[str, Category] = {}
        self._by_name: dict[str, Category] = {}
        self._children: dict[str, list[Category]] = {}
        for category in self.categories:
            self._by_id.setdefault(category.id, category)
            self._by_name.setdefault(category.name, category)
            if category.parent_id:
                self._children.setdefault(category.parent_id, []).append(category)
        self._closure_cache: dict[str, tuple[str, ...]] = {}

    def get(self, category_id: str) -> Optional[Category]:
        return self._by_id.get(category_id)

    def by_name(self, name: str) -> Optional[Category]:
        return self._by_name.get(name)

    def children(self, category_id: str) -> list[Category]:
        return list(self._children.get(category_id, []))

    def top_level(
        self, transaction_type: Optional[TransactionType] = None
    ) -> list[Category]:
        return [
            c
            for c in self.categories
            if c.is_top_level
            and (transaction_type is None or c.type == transaction_type)
        ]

    def descendant_ids(self, category_id: str) -> tuple[str, ...]:
        """Breadth-first closure of ``category_id``, the category itself first."""
        cached = self._closure_cache.get(category_id)
        if cached is not None:
            return cached
        if category_id not in self._by_id:
            return ()

        visited: set[str] = set()
        ordered: list[str] = []
        queue = deque([category_id])
        while queue:
            current = queue.popleft()
            if current in visited:
                logger.warning(
                    "category_cycle: root=%s revisited=%s", category_id, current
                )
                continue
            visited.add(current)
            ordered.append(current)
            queue.extend(child.id for child in self._children.get(current, []))

        closure = tuple(ordered)
        self._closure_cache[category_id] = closure
        return closure

    def descendant_names(self, category_id: str) -> frozenset[str]:
        return frozenset(self._by_id[cid].name for cid in self.descendant_ids(category_id))

    def lineage(self, category_id: str) -> list[Category]:
        """Ancestors of ``category_id``, top-level first, ending with itself.

        A parent pointer to a missing category stops the walk at the last
        category found.
        """
        chain: list[Category] = []
        seen: set[str] = set()
        current = self._by_id.get(category_id)
        while current is not None and current.id not in seen:
            seen.add(current.id)
            chain.append(current)
            current = self._by_id.get(current.parent_id) if current.parent_id else None
        chain.reverse()
        return chain

    def aggregate(
        self,
        transactions: Iterable[Transaction],
        candidates: Optional[Sequence[Category]] = None,
        transaction_type: Optional[TransactionType] = TransactionType.expense,
    ) -> list[CategoryTotal]:
        if candidates is None:
            candidates = self.top_level(transaction_type)

        by_name: dict[str, Decimal] = {}
        for txn in transactions:
            if txn.exclude_from_reports:
                continue
            if transaction_type is not None and txn.type != transaction_type:
                continue
            by_name[txn.category] = by_name.get(txn.category, Decimal(0)) + txn.amount

        totals: list[CategoryTotal] = []
        for category in candidates:
            names = self.descendant_names(category.id)
            total = sum((by_name.get(n, Decimal(0)) for n in names), Decimal(0))
            if total == 0:
                continue
            totals.append(CategoryTotal(category.id, category.name, total))

        totals.sort(key=lambda t: t.total, reverse=True)
        grand_total = sum((t.total for t in totals), Decimal(0))
        return [
            CategoryTotal(
                t.category_id,
                t.name,
                t.total,
                float(t.total / grand_total * 100) if grand_total else 0.0,
            )
            for t in totals
        ]


def descendant_names(
    category_id: str, all_categories: Iterable[Category]
) -> frozenset[str]:
    return CategoryTree(all_categories).descendant_names(category_id)


def aggregate(
    transactions: Iterable[Transaction],
    categories: Iterable[Category],
    candidates: Optional[Sequence[Category]] = None,
    transaction_type: Optional[TransactionType] = TransactionType.expense,
) -> list[CategoryTotal]:
    """Per-category totals rolled up over each candidate's subtree.

    ``categories`` is the full forest used to resolve descendants;
    ``candidates`` are the categories reported on (top-level categories of
    ``transaction_type`` when omitted). Zero totals are dropped and ties keep
    the candidates' input order.
    """
    return CategoryTree(categories).aggregate(
        transactions, candidates, transaction_type
    )
