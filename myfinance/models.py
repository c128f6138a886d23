from __future__ import annotations
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Optional, List, Literal


TransactionType = Literal["income", "outcome"]
TransactionStatus = Literal["paid", "received", "pending"]

TRANSACTION_TYPES = ("income", "outcome")
TRANSACTION_STATUSES = ("paid", "received", "pending")

CREDIT_CARD_CATEGORY = "Cartão de Crédito"

CATEGORIES = [
    "Alimentação", "Transporte", "Saúde", "Lazer", "Moradia",
    "Educação", CREDIT_CARD_CATEGORY, "Salário", "Investimento",
    "Beleza", "Seguro", "Outros",
]


class GoalType(str, Enum):
    EXPENSE_LIMIT = "expense_limit"
    SAVINGS = "savings"
    INVESTMENT = "investment"
    DEBT_PAYMENT = "debt_payment"
    # Stored types this version does not know about
    OTHER = "other"

    @classmethod
    def resolve(cls, raw: Optional[str]) -> GoalType:
        if not raw:
            return cls.SAVINGS
        try:
            return cls(raw)
        except ValueError:
            return cls.OTHER


@dataclass
class Transaction:
    id: int
    name: str
    amount: float
    t_type: TransactionType
    category: str
    t_date: date
    status: TransactionStatus = "paid"


@dataclass
class Card:
    id: int
    name: str
    brand: str = ""
    limit: float = 0.0
    used: float = 0.0
    closing_day: Optional[int] = None
    due_day: Optional[int] = None

    @property
    def available(self) -> float:
        return self.limit - self.used

    @property
    def percent_used(self) -> float:
        if self.limit > 0:
            return self.used / self.limit * 100
        return 0.0


@dataclass
class Goal:
    id: int
    name: str
    category: str
    amount: float
    g_type: Optional[str] = None
    saved: Optional[float] = None

    @property
    def kind(self) -> GoalType:
        return GoalType.resolve(self.g_type)

    @property
    def saved_value(self) -> float:
        return self.saved or 0.0


@dataclass
class FinanceState:
    transactions: List[Transaction] = field(default_factory=list)
    cards: List[Card] = field(default_factory=list)
    goals: List[Goal] = field(default_factory=list)

    def clear(self):
        self.transactions.clear()
        self.cards.clear()
        self.goals.clear()
