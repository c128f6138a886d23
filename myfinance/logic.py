import time
from dataclasses import fields
from datetime import date
from typing import Iterable, Optional

from myfinance.models import (
    FinanceState, Transaction, Card, Goal, GoalType,
    TRANSACTION_TYPES, TRANSACTION_STATUSES,
)


def new_id(existing: Iterable[int]) -> int:
    candidate = int(time.time() * 1000)
    return max(candidate, max(existing, default=0) + 1)


def _find(items, item_id: int):
    for item in items:
        if item.id == item_id:
            return item
    return None


def _apply_changes(item, changes: dict):
    editable = {f.name for f in fields(item)} - {"id"}
    for key in changes:
        if key not in editable:
            raise ValueError(f"Cannot edit field: {key}")
    for key, value in changes.items():
        setattr(item, key, value)


def _check_amount(amount: float, what: str = "Amount"):
    if amount < 0:
        raise ValueError(f"{what} must not be negative")


# ===== TRANSACTIONS =====
def find_transaction(state: FinanceState, transaction_id: int) -> Optional[Transaction]:
    return _find(state.transactions, transaction_id)


def add_transaction(
        state: FinanceState,
        name: str,
        amount: float,
        t_type: str,
        category: str,
        t_date: date,
        status: Optional[str] = None,
) -> Transaction:
    if not name:
        raise ValueError("Transaction name is required")
    if t_type not in TRANSACTION_TYPES:
        raise ValueError("Type must be 'income' or 'outcome'")
    _check_amount(amount)
    if status is None:
        status = "received" if t_type == "income" else "paid"
    elif status not in TRANSACTION_STATUSES:
        raise ValueError(f"Unknown status: {status}")

    transaction = Transaction(
        id=new_id(t.id for t in state.transactions),
        name=name,
        amount=amount,
        t_type=t_type,
        category=category,
        t_date=t_date,
        status=status,
    )
    state.transactions.append(transaction)
    return transaction


def edit_transaction(state: FinanceState, transaction_id: int, **changes) -> bool:
    transaction = find_transaction(state, transaction_id)
    if transaction is None:
        return False

    if "t_type" in changes and changes["t_type"] not in TRANSACTION_TYPES:
        raise ValueError("Type must be 'income' or 'outcome'")
    if "status" in changes and changes["status"] not in TRANSACTION_STATUSES:
        raise ValueError(f"Unknown status: {changes['status']}")
    if "amount" in changes:
        _check_amount(changes["amount"])

    _apply_changes(transaction, changes)
    return True


def delete_transaction(state: FinanceState, transaction_id: int) -> bool:
    count = len(state.transactions)
    state.transactions[:] = [t for t in state.transactions if t.id != transaction_id]
    return len(state.transactions) != count


# ===== CARDS =====
def find_card(state: FinanceState, card_id: int) -> Optional[Card]:
    return _find(state.cards, card_id)


def _check_day(day: Optional[int], what: str):
    if day is not None and not 1 <= day <= 31:
        raise ValueError(f"{what} must be between 1 and 31")


def add_card(
        state: FinanceState,
        name: str,
        limit: float = 0.0,
        brand: str = "",
        closing_day: Optional[int] = None,
        due_day: Optional[int] = None,
) -> Card:
    _check_amount(limit, "Limit")
    _check_day(closing_day, "Closing day")
    _check_day(due_day, "Due day")

    card = Card(
        id=new_id(c.id for c in state.cards),
        name=name.strip() or "Cartão",
        brand=brand,
        limit=limit,
        used=0.0,
        closing_day=closing_day,
        due_day=due_day,
    )
    state.cards.append(card)
    return card


def edit_card(state: FinanceState, card_id: int, **changes) -> bool:
    card = find_card(state, card_id)
    if card is None:
        return False

    if "limit" in changes:
        _check_amount(changes["limit"], "Limit")
    _check_day(changes.get("closing_day"), "Closing day")
    _check_day(changes.get("due_day"), "Due day")

    _apply_changes(card, changes)
    return True


def set_card_used(state: FinanceState, card_id: int, used: float) -> bool:
    return edit_card(state, card_id, used=used)


def delete_card(state: FinanceState, card_id: int) -> bool:
    count = len(state.cards)
    state.cards[:] = [c for c in state.cards if c.id != card_id]
    return len(state.cards) != count


# ===== GOALS =====
def find_goal(state: FinanceState, goal_id: int) -> Optional[Goal]:
    return _find(state.goals, goal_id)


def add_goal(
        state: FinanceState,
        name: str,
        amount: float,
        category: str,
        g_type: Optional[str] = GoalType.EXPENSE_LIMIT.value,
) -> Goal:
    if not name:
        raise ValueError("Goal name is required")

    goal = Goal(
        id=new_id(g.id for g in state.goals),
        name=name,
        category=category,
        amount=amount,
        g_type=g_type,
    )
    state.goals.append(goal)
    return goal


def edit_goal(state: FinanceState, goal_id: int, **changes) -> bool:
    goal = find_goal(state, goal_id)
    if goal is None:
        return False

    _apply_changes(goal, changes)
    return True


def delete_goal(state: FinanceState, goal_id: int) -> bool:
    count = len(state.goals)
    state.goals[:] = [g for g in state.goals if g.id != goal_id]
    return len(state.goals) != count


def _check_saved_goal(goal: Goal):
    if goal.kind is GoalType.EXPENSE_LIMIT:
        raise ValueError("Expense limit goals track spending, not saved values")


def _check_delta(delta: float):
    if not delta > 0:
        raise ValueError("Value must be greater than zero")


def add_goal_value(goal: Goal, delta: float) -> float:
    _check_saved_goal(goal)
    _check_delta(delta)
    goal.saved = goal.saved_value + delta
    return goal.saved


def subtract_goal_value(goal: Goal, delta: float) -> float:
    _check_saved_goal(goal)
    _check_delta(delta)
    goal.saved = max(0.0, goal.saved_value - delta)
    return goal.saved


def reset_goal(goal: Goal) -> float:
    _check_saved_goal(goal)
    goal.saved = 0.0
    return goal.saved
