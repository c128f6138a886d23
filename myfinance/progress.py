"""Goal progress.

``compute_progress`` derives a goal's current value from a snapshot of
transactions and cards. It never mutates its inputs and never raises for
degenerate goals (zero or negative targets, unknown types).
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Sequence

from myfinance.models import Goal, GoalType, Transaction, Card, CREDIT_CARD_CATEGORY


@dataclass(frozen=True)
class ProgressSnapshot:
    current: float
    target: float
    percent: float
    status_label: str
    message: str
    show_add_control: bool

    @property
    def reached(self) -> bool:
        return self.percent >= 100


@dataclass(frozen=True)
class _Labels:
    reached_status: str
    reached_message: str
    progress_status: str
    progress_message: str


# Messages are formatted with: amount (the overage, current value or gap) and name
_SAVED_LABELS = {
    GoalType.SAVINGS: _Labels(
        "Meta atingida! 🎉", "Parabéns! Você economizou {amount}",
        "Economizando...", "Faltam {amount} para atingir a meta",
    ),
    GoalType.INVESTMENT: _Labels(
        "Meta de investimento atingida! 🚀", "Você já guardou {amount} para {name}",
        "Guardando...", "Faltam {amount} para completar",
    ),
    GoalType.DEBT_PAYMENT: _Labels(
        "Dívida quitada! 🎊", "Parabéns! Você pagou toda a dívida",
        "Pagando dívida...", "Faltam {amount} para quitar",
    ),
    GoalType.OTHER: _Labels(
        "Meta atingida! 🎉", "Parabéns! Você completou a meta",
        "Em progresso...", "Faltam {amount} para completar",
    ),
}

_EXPENSE_LABELS = _Labels(
    "Limite ultrapassado!", "Você gastou {amount} a mais que o planejado",
    "Dentro do limite", "Ainda pode gastar {amount}",
)

_TYPE_LABELS = {
    GoalType.EXPENSE_LIMIT: "Limite de Gasto",
    GoalType.SAVINGS: "Economia",
    GoalType.INVESTMENT: "Investimento",
    GoalType.DEBT_PAYMENT: "Pagamento",
    GoalType.OTHER: "Meta",
}


def format_currency(value: float) -> str:
    """BRL display string, e.g. ``R$ 1.234,56``."""
    text = f"{abs(value):,.2f}".replace(",", "_").replace(".", ",").replace("_", ".")
    sign = "-" if round(value, 2) < 0 else ""
    return f"{sign}R$ {text}"


def percent_of(current: float, target: float) -> float:
    if target > 0:
        return current / target * 100
    return 0.0


def category_spend(transactions: Sequence[Transaction], category: str) -> float:
    return sum(t.amount for t in transactions if t.category == category and t.t_type == "outcome")


def total_card_used(cards: Sequence[Card]) -> float:
    return sum(card.used or 0 for card in cards)


def goal_type_label(goal: Goal) -> str:
    return _TYPE_LABELS[goal.kind]


def _expense_limit_progress(goal, transactions, cards, include_card_spend) -> ProgressSnapshot:
    target = goal.amount
    current = category_spend(transactions, goal.category)
    if include_card_spend and goal.category == CREDIT_CARD_CATEGORY:
        current += total_card_used(cards)

    percent = percent_of(current, target)
    if percent >= 100:
        status = _EXPENSE_LABELS.reached_status
        message = _EXPENSE_LABELS.reached_message.format(amount=format_currency(current - target))
    else:
        status = _EXPENSE_LABELS.progress_status
        message = _EXPENSE_LABELS.progress_message.format(amount=format_currency(target - current))

    return ProgressSnapshot(current, target, percent, status, message, show_add_control=False)


def _saved_progress(goal: Goal, kind: GoalType) -> ProgressSnapshot:
    labels = _SAVED_LABELS[kind]
    target = goal.amount
    current = goal.saved_value

    percent = percent_of(current, target)
    if percent >= 100:
        status = labels.reached_status
        message = labels.reached_message.format(amount=format_currency(current), name=goal.name)
    else:
        status = labels.progress_status
        message = labels.progress_message.format(amount=format_currency(target - current), name=goal.name)

    return ProgressSnapshot(current, target, percent, status, message, show_add_control=True)


def compute_progress(
        goal: Goal,
        transactions: Sequence[Transaction],
        cards: Sequence[Card],
        include_card_spend: bool = True,
) -> ProgressSnapshot:
    kind = goal.kind
    if kind is GoalType.EXPENSE_LIMIT:
        return _expense_limit_progress(goal, transactions, cards, include_card_spend)
    return _saved_progress(goal, kind)


def progress_for_all(
        goals: Sequence[Goal],
        transactions: Sequence[Transaction],
        cards: Sequence[Card],
        include_card_spend: bool = True,
) -> list[tuple[Goal, ProgressSnapshot]]:
    return [(goal, compute_progress(goal, transactions, cards, include_card_spend)) for goal in goals]
