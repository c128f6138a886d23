import json
import logging
from pathlib import Path
from datetime import date
from typing import Optional

from myfinance.config import DATA_DIR, DEFAULT_SAVE_NAME
from myfinance.models import FinanceState, Transaction, Card, Goal

logger = logging.getLogger(__name__)

SAVES_DIR = DATA_DIR


class EnhancedJSONEncoder(json.JSONEncoder):
    def default(self, obj):
        if isinstance(obj, date):
            return obj.isoformat()
        return super().default(obj)


# ===== WIRE FORMAT =====
def transaction_to_dict(t: Transaction) -> dict:
    return {
        "id": t.id,
        "name": t.name,
        "amount": t.amount,
        "type": t.t_type,
        "category": t.category,
        "date": t.t_date.isoformat(),
        "status": t.status,
    }


def card_to_dict(c: Card) -> dict:
    return {
        "id": c.id,
        "name": c.name,
        "brand": c.brand,
        "limit": c.limit,
        "used": c.used,
        "closingDay": c.closing_day,
        "dueDay": c.due_day,
    }


def goal_to_dict(g: Goal) -> dict:
    data = {
        "id": g.id,
        "name": g.name,
        "category": g.category,
        "amount": g.amount,
    }
    if g.g_type is not None:
        data["type"] = g.g_type
    if g.saved is not None:
        data["saved"] = g.saved
    return data


def state_to_dict(state: FinanceState) -> dict:
    return {
        "transactions": [transaction_to_dict(t) for t in state.transactions],
        "cards": [card_to_dict(c) for c in state.cards],
        "goals": [goal_to_dict(g) for g in state.goals],
    }


def _optional_day(value) -> Optional[int]:
    if value in (None, ""):
        return None
    return int(value)


def transaction_from_dict(data: dict) -> Transaction:
    t_type = data["type"]
    return Transaction(
        id=int(data["id"]),
        name=data.get("name", ""),
        amount=float(data["amount"]),
        t_type=t_type,
        category=data.get("category") or "Outros",
        t_date=date.fromisoformat(data["date"][:10]),
        status=data.get("status") or ("received" if t_type == "income" else "paid"),
    )


def card_from_dict(data: dict) -> Card:
    return Card(
        id=int(data["id"]),
        name=data.get("name") or "Cartão",
        brand=data.get("brand") or data.get("flag") or "",
        limit=float(data.get("limit") or 0),
        used=float(data.get("used") or 0),
        closing_day=_optional_day(data.get("closingDay")),
        due_day=_optional_day(data.get("dueDay")),
    )


def goal_from_dict(data: dict) -> Goal:
    saved = data.get("saved")
    return Goal(
        id=int(data["id"]),
        name=data.get("name", ""),
        category=data.get("category") or "Outros",
        amount=float(data.get("amount") or 0),
        g_type=data.get("type"),
        saved=float(saved) if saved is not None else None,
    )


def _load_records(raw, parse, kind: str) -> list:
    if not isinstance(raw, list):
        return []

    records = []
    for item in raw:
        try:
            records.append(parse(item))
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning("Skipping invalid %s %r: %s", kind, item.get("id") if isinstance(item, dict) else item, e)
    return records


def state_from_dict(data) -> FinanceState:
    if not isinstance(data, dict):
        logger.warning("Snapshot is not an object, starting empty")
        return FinanceState()

    goals = data.get("goals")
    if not isinstance(goals, list):
        # Older snapshots stored goals under "budgets"
        goals = data.get("budgets")

    return FinanceState(
        transactions=_load_records(data.get("transactions"), transaction_from_dict, "transaction"),
        cards=_load_records(data.get("cards"), card_from_dict, "card"),
        goals=_load_records(goals, goal_from_dict, "goal"),
    )


# ===== SAVE FILES =====
def save_path(save_name: str = DEFAULT_SAVE_NAME) -> Path:
    return SAVES_DIR / f"{save_name}.json"


def list_save_files():
    if not SAVES_DIR.exists():
        return []
    return sorted(f.stem for f in SAVES_DIR.glob("*.json"))


def save_state(state: FinanceState, save_name: str = DEFAULT_SAVE_NAME) -> bool:
    try:
        SAVES_DIR.mkdir(parents=True, exist_ok=True)
        json_str = json.dumps(state_to_dict(state), cls=EnhancedJSONEncoder, indent=2, ensure_ascii=False)
        save_path(save_name).write_text(json_str, encoding="utf-8")
        logger.info("Saved %d transactions to '%s'", len(state.transactions), save_name)
        return True
    except OSError as e:
        logger.error("Error saving data: %s", e)
        return False


def read_snapshot(save_name: str = DEFAULT_SAVE_NAME) -> Optional[FinanceState]:
    """Parse a save file, or return None when it is missing or not valid JSON."""
    filepath = save_path(save_name)
    if not filepath.exists():
        logger.info("Save file '%s' not found", save_name)
        return None

    try:
        data = json.loads(filepath.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning("Error loading '%s': %s", save_name, e)
        return None

    state = state_from_dict(data)
    logger.info("Loaded %d transactions, %d cards, %d goals",
                len(state.transactions), len(state.cards), len(state.goals))
    return state


def load_state(save_name: str = DEFAULT_SAVE_NAME) -> FinanceState:
    loaded = read_snapshot(save_name)
    return loaded if loaded is not None else FinanceState()


def load_into(state: FinanceState, save_name: str = DEFAULT_SAVE_NAME) -> bool:
    """Replace the contents of ``state`` with a saved snapshot.

    Returns False and leaves ``state`` untouched when the save cannot be read.
    """
    loaded = read_snapshot(save_name)
    if loaded is None:
        return False

    state.transactions[:] = loaded.transactions
    state.cards[:] = loaded.cards
    state.goals[:] = loaded.goals
    return True


# ===== BACKUPS =====
def export_backup(state: FinanceState, path: Path) -> Path:
    path.write_text(json.dumps(state_to_dict(state), indent=2, ensure_ascii=False), encoding="utf-8")
    return path


def import_backup(state: FinanceState, data, replace: bool = True) -> FinanceState:
    incoming = state_from_dict(data)

    if replace:
        state.transactions[:] = incoming.transactions
        state.cards[:] = incoming.cards
        state.goals[:] = incoming.goals
        return state

    for current, added in (
            (state.transactions, incoming.transactions),
            (state.cards, incoming.cards),
            (state.goals, incoming.goals),
    ):
        max_id = max((item.id for item in current), default=0)
        for index, item in enumerate(added):
            item.id = max_id + index + 1
            current.append(item)

    return state


def import_backup_file(state: FinanceState, path: Path, replace: bool = True) -> FinanceState:
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    return import_backup(state, data, replace)
