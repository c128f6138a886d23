import unittest
import io
import json
import tempfile
from datetime import date, datetime
from pathlib import Path
from unittest.mock import patch

import pandas as pd

from myfinance import storage
from myfinance.models import (
    Transaction, Card, Goal, GoalType, FinanceState, CREDIT_CARD_CATEGORY
)
from myfinance.periods import (
    AllPeriods, ExactMonth, ExactYear, RollingWindow,
    filter_by_period, resolve_window, parse_period, includes_card_spend,
    filter_transactions, available_months,
)
from myfinance.progress import compute_progress, format_currency, goal_type_label, progress_for_all
from myfinance.logic import (
    new_id, add_transaction, edit_transaction, delete_transaction, find_transaction,
    add_card, edit_card, set_card_used, delete_card,
    add_goal, edit_goal, delete_goal, find_goal,
    add_goal_value, subtract_goal_value, reset_goal,
)
from myfinance.reports import (
    summarize, category_summary, top_categories, monthly_expenses, goal_comparison, export_csvs
)
from myfinance.cli import FinanceCLI
from myfinance.config import DEFAULT_SAVE_NAME
from myfinance.main import main


NOW = datetime(2024, 3, 15, 14, 30)


def make_transaction(t_id, amount, t_type="outcome", category="Alimentação", t_date=date(2024, 3, 10),
                     name="Compra", status=None):
    if status is None:
        status = "received" if t_type == "income" else "paid"
    return Transaction(id=t_id, name=name, amount=amount, t_type=t_type, category=category,
                       t_date=t_date, status=status)


class TestModels(unittest.TestCase):
    def test_card_derived_values(self):
        """Test available and percent used"""
        card = Card(id=1, name="Nubank", limit=1000.0, used=250.0)
        self.assertEqual(card.available, 750.0)
        self.assertEqual(card.percent_used, 25.0)

    def test_card_zero_limit(self):
        """A zero limit never divides by zero"""
        card = Card(id=1, name="Nubank", limit=0.0, used=200.0)
        self.assertEqual(card.percent_used, 0)
        self.assertEqual(card.available, -200.0)

    def test_card_over_limit(self):
        card = Card(id=1, name="Inter", limit=100.0, used=150.0)
        self.assertEqual(card.available, -50.0)
        self.assertEqual(card.percent_used, 150.0)

    def test_goal_type_resolution(self):
        """Missing types default to savings, unknown ones to the generic arm"""
        self.assertIs(GoalType.resolve(None), GoalType.SAVINGS)
        self.assertIs(GoalType.resolve(""), GoalType.SAVINGS)
        self.assertIs(GoalType.resolve("expense_limit"), GoalType.EXPENSE_LIMIT)
        self.assertIs(GoalType.resolve("debt_payment"), GoalType.DEBT_PAYMENT)
        self.assertIs(GoalType.resolve("vacation"), GoalType.OTHER)

    def test_goal_saved_default(self):
        goal = Goal(id=1, name="Viagem", category="Lazer", amount=100.0)
        self.assertIsNone(goal.saved)
        self.assertEqual(goal.saved_value, 0.0)
        self.assertIs(goal.kind, GoalType.SAVINGS)


class TestPeriodFilter(unittest.TestCase):
    def setUp(self):
        self.records = [
            make_transaction(1, 10.0, t_date=date(2023, 12, 31)),
            make_transaction(2, 20.0, t_date=date(2024, 1, 1)),
            make_transaction(3, 30.0, t_date=date(2024, 2, 29)),
            make_transaction(4, 40.0, t_date=date(2024, 3, 1)),
            make_transaction(5, 50.0, t_date=date(2024, 3, 15)),
            make_transaction(6, 60.0, t_date=date(2024, 3, 31)),
            make_transaction(7, 70.0, t_date=date(2024, 4, 1)),
        ]

    def ids(self, records):
        return [r.id for r in records]

    def test_all_returns_input(self):
        """Filtering with AllPeriods returns every record"""
        self.assertEqual(filter_by_period(self.records, AllPeriods(), NOW), self.records)
        self.assertEqual(filter_by_period([], AllPeriods(), NOW), [])

    def test_does_not_mutate_input(self):
        before = list(self.records)
        filter_by_period(self.records, RollingWindow("current-month"), NOW)
        self.assertEqual(self.records, before)

    def test_exact_month(self):
        result = filter_by_period(self.records, ExactMonth(month=3, year=2024), NOW)
        self.assertEqual(self.ids(result), [4, 5, 6])

        result = filter_by_period(self.records, ExactMonth(month=3, year=2023), NOW)
        self.assertEqual(result, [])

    def test_exact_year(self):
        result = filter_by_period(self.records, ExactYear(2024), NOW)
        self.assertEqual(self.ids(result), [2, 3, 4, 5, 6, 7])

    def test_current_month(self):
        """Every current-month record lies in the reference month"""
        result = filter_by_period(self.records, RollingWindow("current-month"), NOW)
        self.assertEqual(self.ids(result), [4, 5, 6])
        for r in result:
            self.assertTrue(date(2024, 3, 1) <= r.t_date <= date(2024, 3, 31))

    def test_last_month(self):
        result = filter_by_period(self.records, RollingWindow("last-month"), NOW)
        self.assertEqual(self.ids(result), [3])

    def test_last_three_months_window(self):
        """last-3-months at 2024-03-15 spans 2024-01-01 through 2024-03-15"""
        self.assertEqual(resolve_window("last-3-months", date(2024, 3, 15)),
                         (date(2024, 1, 1), date(2024, 3, 15)))

        result = filter_by_period(self.records, RollingWindow("last-3-months"), NOW)
        self.assertEqual(self.ids(result), [2, 3, 4, 5])

    def test_last_six_months_and_year(self):
        self.assertEqual(resolve_window("last-6-months", NOW), (date(2023, 10, 1), date(2024, 3, 15)))
        self.assertEqual(resolve_window("last-year", NOW), (date(2023, 4, 1), date(2024, 3, 15)))

        result = filter_by_period(self.records, RollingWindow("last-year"), NOW)
        self.assertEqual(self.ids(result), [1, 2, 3, 4, 5])

    def test_window_across_year_boundary(self):
        self.assertEqual(resolve_window("last-month", date(2024, 1, 20)),
                         (date(2023, 12, 1), date(2023, 12, 31)))
        self.assertEqual(resolve_window("current-month", date(2024, 2, 10)),
                         (date(2024, 2, 1), date(2024, 2, 29)))

    def test_time_of_day_is_ignored(self):
        """Records on the reference day are included whatever the clock says"""
        early = datetime(2024, 3, 15, 0, 0, 1)
        result = filter_by_period(self.records, RollingWindow("last-3-months"), early)
        self.assertIn(5, self.ids(result))

        timed = [make_transaction(9, 1.0, t_date=datetime(2024, 3, 15, 22, 0))]
        result = filter_by_period(timed, RollingWindow("last-3-months"), early)
        self.assertEqual(self.ids(result), [9])

    def test_unknown_kind_returns_everything(self):
        self.assertEqual(filter_by_period(self.records, RollingWindow("next-decade"), NOW), self.records)
        self.assertEqual(filter_by_period(self.records, None, NOW), self.records)
        self.assertEqual(filter_by_period(self.records, "current-month", NOW), self.records)
        self.assertIsNone(resolve_window("next-decade", NOW))

    def test_custom_date_accessor(self):
        rows = [{"day": date(2024, 3, 2)}, {"day": date(2024, 5, 2)}]
        result = filter_by_period(rows, RollingWindow("current-month"), NOW, date_of=lambda r: r["day"])
        self.assertEqual(result, [rows[0]])

    def test_parse_period(self):
        self.assertEqual(parse_period("all"), AllPeriods())
        self.assertEqual(parse_period(None), AllPeriods())
        self.assertEqual(parse_period("last-6-months"), RollingWindow("last-6-months"))
        self.assertEqual(parse_period("2024-03"), ExactMonth(3, 2024))
        self.assertEqual(parse_period("2023"), ExactYear(2023))
        self.assertEqual(parse_period("someday"), RollingWindow("someday"))
        self.assertEqual(parse_period("2024-13"), RollingWindow("2024-13"))

    def test_includes_card_spend(self):
        self.assertTrue(includes_card_spend(AllPeriods()))
        self.assertTrue(includes_card_spend(RollingWindow("current-month")))
        self.assertFalse(includes_card_spend(RollingWindow("last-month")))
        self.assertFalse(includes_card_spend(ExactMonth(3, 2024)))

    def test_filter_transactions(self):
        records = [
            make_transaction(1, 10.0, name="Mercado Extra"),
            make_transaction(2, 20.0, t_type="income", category="Salário", name="Salário março"),
            make_transaction(3, 30.0, category="Transporte", name="Uber"),
        ]
        self.assertEqual(self.ids(filter_transactions(records, search="mercado")), [1])
        self.assertEqual(self.ids(filter_transactions(records, t_type="outcome")), [1, 3])
        self.assertEqual(self.ids(filter_transactions(records, category="Transporte")), [3])
        self.assertEqual(self.ids(filter_transactions(records, search="  ", t_type="all", category="all")),
                         [1, 2, 3])

    def test_available_months(self):
        result = available_months(self.records, NOW)
        self.assertEqual(result[0], "2024-04")
        self.assertEqual(result[-1], "2023-12")
        self.assertIn("2024-03", result)
        self.assertEqual(available_months([], NOW), ["2024-03"])


class TestGoalProgress(unittest.TestCase):
    def test_expense_limit_exceeded(self):
        """Two food purchases over a 500 limit"""
        goal = Goal(id=1, name="Comida", category="Alimentação", amount=500.0, g_type="expense_limit")
        transactions = [
            make_transaction(1, 300.0),
            make_transaction(2, 250.0),
        ]
        progress = compute_progress(goal, transactions, [], True)

        self.assertEqual(progress.current, 550.0)
        self.assertEqual(progress.target, 500.0)
        self.assertAlmostEqual(progress.percent, 110.0)
        self.assertTrue(progress.reached)
        self.assertEqual(progress.status_label, "Limite ultrapassado!")
        self.assertIn("R$ 50,00", progress.message)
        self.assertFalse(progress.show_add_control)

    def test_expense_limit_within(self):
        goal = Goal(id=1, name="Comida", category="Alimentação", amount=500.0, g_type="expense_limit")
        transactions = [
            make_transaction(1, 200.0),
            make_transaction(2, 999.0, t_type="income"),
            make_transaction(3, 999.0, category="Lazer"),
        ]
        progress = compute_progress(goal, transactions, [])

        self.assertEqual(progress.current, 200.0)
        self.assertAlmostEqual(progress.percent, 40.0)
        self.assertEqual(progress.status_label, "Dentro do limite")
        self.assertEqual(progress.message, "Ainda pode gastar R$ 300,00")

    def test_expense_limit_ignores_saved(self):
        """Expense limits are derived from transactions only"""
        goal = Goal(id=1, name="Comida", category="Alimentação", amount=500.0,
                    g_type="expense_limit", saved=400.0)
        progress = compute_progress(goal, [], [])
        self.assertEqual(progress.current, 0)
        self.assertEqual(progress.percent, 0)

    def test_expense_limit_income_with_outcome_status(self):
        """Type decides, not status"""
        goal = Goal(id=1, name="Comida", category="Alimentação", amount=100.0, g_type="expense_limit")
        transactions = [make_transaction(1, 80.0, t_type="income", status="paid")]
        self.assertEqual(compute_progress(goal, transactions, []).current, 0)

    def test_credit_card_goal_includes_cards(self):
        goal = Goal(id=1, name="Cartões", category=CREDIT_CARD_CATEGORY, amount=1000.0, g_type="expense_limit")
        transactions = [make_transaction(1, 100.0, category=CREDIT_CARD_CATEGORY)]
        cards = [Card(id=1, name="A", limit=500.0, used=300.0), Card(id=2, name="B", limit=500.0, used=200.0)]

        with_cards = compute_progress(goal, transactions, cards, include_card_spend=True)
        self.assertEqual(with_cards.current, 600.0)

        without_cards = compute_progress(goal, transactions, cards, include_card_spend=False)
        self.assertEqual(without_cards.current, 100.0)

    def test_card_spend_only_for_card_category(self):
        goal = Goal(id=1, name="Comida", category="Alimentação", amount=1000.0, g_type="expense_limit")
        cards = [Card(id=1, name="A", limit=500.0, used=300.0)]
        self.assertEqual(compute_progress(goal, [], cards, True).current, 0)

    def test_savings_reached(self):
        goal = Goal(id=1, name="Reserva", category="Outros", amount=1000.0, g_type="savings", saved=1000.0)
        progress = compute_progress(goal, [], [])

        self.assertEqual(progress.percent, 100.0)
        self.assertTrue(progress.reached)
        self.assertEqual(progress.status_label, "Meta atingida! 🎉")
        self.assertEqual(progress.message, "Parabéns! Você economizou R$ 1.000,00")
        self.assertTrue(progress.show_add_control)

    def test_savings_in_progress(self):
        goal = Goal(id=1, name="Reserva", category="Outros", amount=1000.0, g_type="savings", saved=250.0)
        progress = compute_progress(goal, [], [])
        self.assertEqual(progress.percent, 25.0)
        self.assertEqual(progress.status_label, "Economizando...")
        self.assertEqual(progress.message, "Faltam R$ 750,00 para atingir a meta")

    def test_saved_goals_ignore_transactions(self):
        """Non expense goals report their saved value whatever the transactions are"""
        transactions = [
            make_transaction(1, 500.0, category="Investimento"),
            make_transaction(2, 700.0, t_type="income", category="Investimento"),
        ]
        cards = [Card(id=1, name="A", limit=100.0, used=90.0)]
        for g_type in ("savings", "investment", "debt_payment", None, "mystery"):
            goal = Goal(id=1, name="X", category="Investimento", amount=1000.0, g_type=g_type, saved=150.0)
            self.assertEqual(compute_progress(goal, transactions, cards).current, 150.0)
            self.assertEqual(compute_progress(goal, [], []).current, 150.0)

    def test_investment_and_debt_labels(self):
        investment = Goal(id=1, name="Ações", category="Investimento", amount=100.0,
                          g_type="investment", saved=120.0)
        progress = compute_progress(investment, [], [])
        self.assertEqual(progress.status_label, "Meta de investimento atingida! 🚀")
        self.assertEqual(progress.message, "Você já guardou R$ 120,00 para Ações")

        debt = Goal(id=2, name="Empréstimo", category="Outros", amount=100.0, g_type="debt_payment")
        progress = compute_progress(debt, [], [])
        self.assertEqual(progress.current, 0)
        self.assertEqual(progress.status_label, "Pagando dívida...")
        self.assertEqual(progress.message, "Faltam R$ 100,00 para quitar")

        debt.saved = 100.0
        self.assertEqual(compute_progress(debt, [], []).status_label, "Dívida quitada! 🎊")

    def test_unknown_type_uses_generic_labels(self):
        goal = Goal(id=1, name="Algo", category="Outros", amount=200.0, g_type="vacation", saved=50.0)
        progress = compute_progress(goal, [], [])
        self.assertEqual(progress.current, 50.0)
        self.assertEqual(progress.status_label, "Em progresso...")
        self.assertTrue(progress.show_add_control)
        self.assertEqual(goal_type_label(goal), "Meta")

    def test_missing_type_behaves_as_savings(self):
        goal = Goal(id=1, name="Algo", category="Outros", amount=200.0, saved=50.0)
        self.assertEqual(compute_progress(goal, [], []).status_label, "Economizando...")

    def test_non_positive_target(self):
        """A zero or negative target gives 0 percent"""
        for target in (0.0, -10.0):
            for g_type in ("expense_limit", "savings", "mystery"):
                goal = Goal(id=1, name="X", category="Alimentação", amount=target, g_type=g_type, saved=30.0)
                progress = compute_progress(goal, [make_transaction(1, 25.0)], [])
                self.assertEqual(progress.percent, 0)

    def test_percent_is_unclamped(self):
        goal = Goal(id=1, name="X", category="Outros", amount=100.0, g_type="savings", saved=350.0)
        self.assertEqual(compute_progress(goal, [], []).percent, 350.0)

    def test_idempotent(self):
        goal = Goal(id=1, name="Comida", category="Alimentação", amount=500.0, g_type="expense_limit")
        transactions = [make_transaction(1, 300.0)]
        cards = [Card(id=1, name="A", limit=100.0, used=50.0)]
        first = compute_progress(goal, transactions, cards)
        second = compute_progress(goal, transactions, cards)
        self.assertEqual(first, second)
        self.assertEqual(len(transactions), 1)
        self.assertIsNone(goal.saved)

    def test_progress_for_all_and_labels(self):
        goals = [
            Goal(id=1, name="A", category="Alimentação", amount=10.0, g_type="expense_limit"),
            Goal(id=2, name="B", category="Outros", amount=10.0, g_type="investment"),
        ]
        result = progress_for_all(goals, [], [])
        self.assertEqual([g.id for g, _ in result], [1, 2])
        self.assertEqual(goal_type_label(goals[0]), "Limite de Gasto")
        self.assertEqual(goal_type_label(goals[1]), "Investimento")

    def test_format_currency(self):
        self.assertEqual(format_currency(0), "R$ 0,00")
        self.assertEqual(format_currency(1234.5), "R$ 1.234,50")
        self.assertEqual(format_currency(1234567.891), "R$ 1.234.567,89")
        self.assertEqual(format_currency(-200), "-R$ 200,00")


class TestStateOperations(unittest.TestCase):
    def setUp(self):
        self.state = FinanceState()

    def test_add_transaction_defaults(self):
        income = add_transaction(self.state, "Salário", 3000.0, "income", "Salário", date(2024, 3, 5))
        outcome = add_transaction(self.state, "Mercado", 120.0, "outcome", "Alimentação", date(2024, 3, 6))

        self.assertEqual(len(self.state.transactions), 2)
        self.assertEqual(income.status, "received")
        self.assertEqual(outcome.status, "paid")
        self.assertNotEqual(income.id, outcome.id)

    def test_add_transaction_validation(self):
        with self.assertRaises(ValueError):
            add_transaction(self.state, "X", -1.0, "outcome", "Outros", date(2024, 3, 6))
        with self.assertRaises(ValueError):
            add_transaction(self.state, "X", 1.0, "expense", "Outros", date(2024, 3, 6))
        with self.assertRaises(ValueError):
            add_transaction(self.state, "", 1.0, "outcome", "Outros", date(2024, 3, 6))
        with self.assertRaises(ValueError):
            add_transaction(self.state, "X", 1.0, "outcome", "Outros", date(2024, 3, 6), status="lost")
        self.assertEqual(self.state.transactions, [])

    def test_ids_stay_unique(self):
        ids = {add_transaction(self.state, f"T{i}", 1.0, "outcome", "Outros", date(2024, 3, 6)).id
               for i in range(50)}
        self.assertEqual(len(ids), 50)
        self.assertGreater(new_id([10 ** 15]), 10 ** 15)

    def test_edit_and_delete_transaction(self):
        t = add_transaction(self.state, "Mercado", 120.0, "outcome", "Alimentação", date(2024, 3, 6))

        self.assertTrue(edit_transaction(self.state, t.id, amount=150.0, status="pending"))
        self.assertEqual(find_transaction(self.state, t.id).amount, 150.0)
        self.assertEqual(t.status, "pending")

        with self.assertRaises(ValueError):
            edit_transaction(self.state, t.id, amount=150.0, colour="red")
        with self.assertRaises(ValueError):
            edit_transaction(self.state, t.id, id=5)
        self.assertFalse(edit_transaction(self.state, 1, amount=1.0))

        self.assertTrue(delete_transaction(self.state, t.id))
        self.assertFalse(delete_transaction(self.state, t.id))
        self.assertEqual(self.state.transactions, [])

    def test_cards(self):
        card = add_card(self.state, "  ", 1000.0, "Visa", closing_day=5, due_day=12)
        self.assertEqual(card.name, "Cartão")
        self.assertEqual(card.used, 0.0)

        self.assertTrue(set_card_used(self.state, card.id, 400.0))
        self.assertEqual(card.available, 600.0)
        self.assertTrue(edit_card(self.state, card.id, name="Nubank", limit=2000.0))
        self.assertAlmostEqual(card.percent_used, 20.0)

        with self.assertRaises(ValueError):
            add_card(self.state, "X", 100.0, closing_day=32)
        with self.assertRaises(ValueError):
            edit_card(self.state, card.id, available=5.0)

        self.assertTrue(delete_card(self.state, card.id))
        self.assertFalse(set_card_used(self.state, card.id, 1.0))

    def test_goals(self):
        goal = add_goal(self.state, "Comida", 500.0, "Alimentação")
        self.assertIs(goal.kind, GoalType.EXPENSE_LIMIT)

        self.assertTrue(edit_goal(self.state, goal.id, amount=600.0, g_type="savings"))
        self.assertIs(find_goal(self.state, goal.id).kind, GoalType.SAVINGS)

        self.assertTrue(delete_goal(self.state, goal.id))
        self.assertIsNone(find_goal(self.state, goal.id))

    def test_add_subtract_reset(self):
        goal = add_goal(self.state, "Reserva", 1000.0, "Outros", "savings")

        self.assertEqual(add_goal_value(goal, 300.0), 300.0)
        self.assertEqual(add_goal_value(goal, 200.0), 500.0)
        self.assertEqual(subtract_goal_value(goal, 100.0), 400.0)
        self.assertEqual(reset_goal(goal), 0.0)
        self.assertEqual(goal.saved, 0.0)

    def test_subtract_floors_at_zero(self):
        """Subtracting more than saved leaves zero"""
        goal = Goal(id=1, name="Reserva", category="Outros", amount=1000.0, g_type="savings", saved=50.0)
        self.assertEqual(subtract_goal_value(goal, 80.0), 0.0)

        fresh = Goal(id=2, name="Nova", category="Outros", amount=1000.0)
        self.assertEqual(subtract_goal_value(fresh, 10.0), 0.0)

    def test_value_operations_validation(self):
        goal = Goal(id=1, name="Reserva", category="Outros", amount=1000.0, g_type="savings")
        with self.assertRaises(ValueError):
            add_goal_value(goal, 0)
        with self.assertRaises(ValueError):
            subtract_goal_value(goal, -5.0)

        limit = Goal(id=2, name="Comida", category="Alimentação", amount=500.0, g_type="expense_limit")
        for operation in (lambda: add_goal_value(limit, 10.0), lambda: subtract_goal_value(limit, 10.0),
                          lambda: reset_goal(limit)):
            with self.assertRaises(ValueError):
                operation()
        self.assertIsNone(limit.saved)


class TestReports(unittest.TestCase):
    def setUp(self):
        self.transactions = [
            make_transaction(1, 3000.0, t_type="income", category="Salário", t_date=date(2024, 3, 5)),
            make_transaction(2, 300.0, category="Alimentação", t_date=date(2024, 3, 6)),
            make_transaction(3, 200.0, category="Alimentação", t_date=date(2024, 3, 7)),
            make_transaction(4, 100.0, category="Transporte", t_date=date(2024, 2, 7)),
            make_transaction(5, 50.0, category="Lazer", t_date=date(2023, 11, 7)),
        ]
        self.cards = [Card(id=1, name="A", limit=1000.0, used=400.0), Card(id=2, name="B", limit=500.0)]

    def test_summarize(self):
        month = filter_by_period(self.transactions, RollingWindow("current-month"), NOW)
        totals = summarize(month, self.cards)
        self.assertEqual(totals["income"], 3000.0)
        self.assertEqual(totals["outcome"], 900.0)
        self.assertEqual(totals["balance"], 2100.0)
        self.assertAlmostEqual(totals["committed_percent"], 30.0)

    def test_summarize_without_income(self):
        totals = summarize([make_transaction(1, 10.0)], [])
        self.assertEqual(totals["committed_percent"], 0)
        self.assertEqual(totals["balance"], -10.0)

    def test_category_summary(self):
        categories, total = category_summary(self.transactions, self.cards, include_card_spend=True)
        self.assertEqual(categories["Alimentação"], {"total": 500.0, "count": 2})
        self.assertEqual(categories[CREDIT_CARD_CATEGORY], {"total": 400.0, "count": 1})
        self.assertNotIn("Salário", categories)
        self.assertEqual(total, 650.0)

        categories, _ = category_summary(self.transactions, self.cards, include_card_spend=False)
        self.assertNotIn(CREDIT_CARD_CATEGORY, categories)

    def test_top_categories(self):
        top = top_categories(self.transactions, self.cards, limit=2)
        self.assertEqual(top, [("Alimentação", 500.0), (CREDIT_CARD_CATEGORY, 400.0)])

    def test_monthly_expenses(self):
        series = monthly_expenses(self.transactions, NOW, months=6)
        self.assertEqual([key for key, _ in series],
                         ["2023-10", "2023-11", "2023-12", "2024-01", "2024-02", "2024-03"])
        self.assertEqual(dict(series)["2024-03"], 500.0)
        self.assertEqual(dict(series)["2023-11"], 50.0)
        self.assertEqual(dict(series)["2024-01"], 0.0)

    def test_goal_comparison_uses_period(self):
        state = FinanceState(
            transactions=self.transactions,
            cards=self.cards,
            goals=[
                Goal(id=1, name="Cartões", category=CREDIT_CARD_CATEGORY, amount=1000.0, g_type="expense_limit"),
                Goal(id=2, name="Comida", category="Alimentação", amount=400.0, g_type="expense_limit"),
            ],
        )
        current = dict((name, p) for name, _, p in goal_comparison(state, RollingWindow("current-month"), NOW))
        self.assertEqual(current["Cartões"].current, 400.0)
        self.assertEqual(current["Comida"].current, 500.0)

        last = dict((name, p) for name, _, p in goal_comparison(state, RollingWindow("last-month"), NOW))
        self.assertEqual(last["Cartões"].current, 0)
        self.assertEqual(last["Comida"].current, 0)

    def test_export_csvs(self):
        state = FinanceState(
            transactions=self.transactions,
            cards=self.cards,
            goals=[Goal(id=1, name="Reserva", category="Outros", amount=100.0, g_type="savings", saved=40.0)],
        )
        with tempfile.TemporaryDirectory() as tmp:
            written = export_csvs(state, ExactYear(2024), NOW, Path(tmp) / "out")

            self.assertEqual(written["transactions.csv"], 4)
            self.assertEqual(written["cards.csv"], 2)
            self.assertEqual(written["goals.csv"], 1)

            goals = pd.read_csv(Path(tmp) / "out" / "goals.csv")
            self.assertEqual(goals.loc[0, "goal"], "Reserva")
            self.assertEqual(goals.loc[0, "percent"], 40.0)

            categories = pd.read_csv(Path(tmp) / "out" / "categories.csv")
            self.assertEqual(categories.loc[0, "category"], "Alimentação")
            self.assertNotIn(CREDIT_CARD_CATEGORY, list(categories["category"]))


class TestStorage(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.patcher = patch.object(storage, "SAVES_DIR", Path(self.tmp.name))
        self.patcher.start()

    def tearDown(self):
        self.patcher.stop()
        self.tmp.cleanup()

    def sample_state(self):
        return FinanceState(
            transactions=[make_transaction(1, 100.0, t_date=date(2024, 3, 1))],
            cards=[Card(id=2, name="Nubank", brand="Mastercard", limit=1000.0, used=300.0, closing_day=3)],
            goals=[
                Goal(id=3, name="Reserva", category="Outros", amount=500.0, g_type="savings", saved=50.0),
                Goal(id=4, name="Futuro", category="Outros", amount=500.0, g_type="vacation"),
            ],
        )

    def test_save_and_load(self):
        """Saving and loading round-trips the snapshot"""
        state = self.sample_state()
        self.assertTrue(storage.save_state(state, "test_save"))

        loaded = storage.load_state("test_save")
        self.assertEqual(loaded, state)
        self.assertEqual(loaded.goals[1].g_type, "vacation")
        self.assertIn("test_save", storage.list_save_files())

    def test_wire_format(self):
        data = storage.state_to_dict(self.sample_state())
        self.assertEqual(data["transactions"][0]["type"], "outcome")
        self.assertEqual(data["transactions"][0]["date"], "2024-03-01")
        self.assertEqual(data["cards"][0]["closingDay"], 3)
        self.assertIsNone(data["cards"][0]["dueDay"])
        self.assertNotIn("saved", data["goals"][1])

    def test_missing_file_gives_empty_state(self):
        self.assertEqual(storage.load_state("nothing_here"), FinanceState())

    def test_malformed_file_gives_empty_state(self):
        storage.save_path("broken").write_text("{not json", encoding="utf-8")
        self.assertEqual(storage.load_state("broken"), FinanceState())

    def test_load_into_leaves_state_when_unreadable(self):
        state = self.sample_state()
        self.assertFalse(storage.load_into(state, "nothing_here"))
        storage.save_path("broken").write_text("{not json", encoding="utf-8")
        self.assertFalse(storage.load_into(state, "broken"))
        self.assertEqual(state, self.sample_state())

        storage.save_state(FinanceState(), "empty")
        self.assertTrue(storage.load_into(state, "empty"))
        self.assertEqual(state, FinanceState())

    def test_non_list_collections(self):
        state = storage.state_from_dict({"transactions": "oops", "cards": None, "goals": {"a": 1}})
        self.assertEqual(state, FinanceState())
        self.assertEqual(storage.state_from_dict([1, 2]), FinanceState())

    def test_budgets_alias(self):
        """Older snapshots keep goals under budgets"""
        data = {"transactions": [], "cards": [],
                "budgets": [{"id": 1, "name": "Comida", "category": "Alimentação", "amount": 300}]}
        state = storage.state_from_dict(data)
        self.assertEqual(len(state.goals), 1)
        self.assertIsNone(state.goals[0].g_type)
        self.assertIs(state.goals[0].kind, GoalType.SAVINGS)

    def test_invalid_records_are_skipped(self):
        data = {
            "transactions": [
                {"id": 1, "name": "Ok", "amount": 10, "type": "outcome", "category": "Outros",
                 "date": "2024-03-01"},
                {"id": 2, "name": "Bad date", "amount": 10, "type": "outcome", "date": "yesterday"},
                {"name": "No id"},
            ],
            "cards": [{"id": 1, "name": "A", "limit": "", "closingDay": ""}],
            "goals": [],
        }
        with self.assertLogs("myfinance.storage", level="WARNING"):
            state = storage.state_from_dict(data)
        self.assertEqual([t.id for t in state.transactions], [1])
        self.assertEqual(state.transactions[0].status, "paid")
        self.assertEqual(state.cards[0].limit, 0.0)
        self.assertIsNone(state.cards[0].closing_day)

    def test_import_replace(self):
        state = self.sample_state()
        backup = {"transactions": [], "cards": [], "goals": [{"id": 9, "name": "G", "category": "Outros",
                                                              "amount": 10}]}
        storage.import_backup(state, backup, replace=True)
        self.assertEqual(state.transactions, [])
        self.assertEqual([g.id for g in state.goals], [9])

    def test_import_merge_renumbers_ids(self):
        state = self.sample_state()
        backup = storage.state_to_dict(self.sample_state())
        storage.import_backup(state, backup, replace=False)

        self.assertEqual([t.id for t in state.transactions], [1, 2])
        self.assertEqual([c.id for c in state.cards], [2, 3])
        self.assertEqual([g.id for g in state.goals], [3, 4, 5, 6])

    def test_backup_file_round_trip(self):
        path = Path(self.tmp.name) / "backup.json"
        storage.export_backup(self.sample_state(), path)
        self.assertEqual(json.loads(path.read_text(encoding="utf-8"))["cards"][0]["name"], "Nubank")

        state = FinanceState()
        storage.import_backup_file(state, path)
        self.assertEqual(state, self.sample_state())


class TestCLI(unittest.TestCase):
    def setUp(self):
        self.state = FinanceState()
        self.out = io.StringIO()
        self.cli = FinanceCLI(self.state, clock=lambda: NOW, stdout=self.out)

    def run_cmd(self, line):
        self.out.seek(0)
        self.out.truncate()
        self.cli.onecmd(line)
        return self.out.getvalue()

    def test_add_and_list(self):
        output = self.run_cmd('add 50 outcome Alimentação 2024-03-10 --name Mercado do bairro')
        self.assertIn("✓ Added outcome 'Mercado do bairro'", output)
        self.assertEqual(self.state.transactions[0].t_date, date(2024, 3, 10))

        self.run_cmd('add 20 outcome "Cartão de Crédito" --status pending')
        self.assertEqual(self.state.transactions[1].category, CREDIT_CARD_CATEGORY)
        self.assertEqual(self.state.transactions[1].t_date, NOW.date())
        self.assertEqual(self.state.transactions[1].status, "pending")

        output = self.run_cmd("list --period current-month --search mercado")
        self.assertIn("Mercado do bairro", output)
        self.assertNotIn("pending", output)

        output = self.run_cmd("list --period last-month")
        self.assertIn("No transactions found", output)

    def test_add_invalid(self):
        output = self.run_cmd("add 50 expense")
        self.assertIn("Invalid input", output)
        output = self.run_cmd("add abc outcome")
        self.assertIn("Invalid input", output)
        self.assertEqual(self.state.transactions, [])

    def test_delete(self):
        self.run_cmd("add 50 outcome")
        t_id = self.state.transactions[0].id
        self.assertIn("✓ Deleted", self.run_cmd(f"delete {t_id}"))
        self.assertIn("Transaction not found", self.run_cmd(f"delete {t_id}"))

    def test_cards_and_summary(self):
        self.run_cmd("add 3000 income Salário 2024-03-01")
        self.run_cmd("card add Nubank 1000 Mastercard --closing 3 --due 10")
        card = self.state.cards[0]
        self.assertEqual((card.closing_day, card.due_day), (3, 10))

        self.run_cmd(f"card use {card.id} 600")
        self.assertEqual(card.used, 600.0)

        output = self.run_cmd("summary")
        self.assertIn("R$ 3.000,00", output)
        self.assertIn("R$ 600,00", output)
        self.assertIn("R$ 2.400,00", output)
        self.assertIn("20% of income committed", output)

    def test_goal_workflow(self):
        self.run_cmd("goal add Reserva 1000 Outros savings")
        goal = self.state.goals[0]

        self.assertIn("R$ 700,00 saved", self.run_cmd(f"goal deposit {goal.id} 700"))
        self.assertIn("R$ 0,00 saved", self.run_cmd(f"goal withdraw {goal.id} 900"))

        self.run_cmd(f"goal deposit {goal.id} 1000")
        output = self.run_cmd("goal list")
        self.assertIn("Meta atingida!", output)
        self.assertIn("100%", output)

        self.run_cmd("goal add Comida 500 Alimentação")
        limit = self.state.goals[1]
        self.assertIn("Invalid input", self.run_cmd(f"goal deposit {limit.id} 10"))
        self.assertIn("Goal not found", self.run_cmd("goal reset 1"))

    def test_report(self):
        self.run_cmd("add 3000 income Salário 2024-03-01")
        self.run_cmd("add 300 outcome Alimentação 2024-03-02")
        self.run_cmd("add 100 outcome Transporte 2024-02-02")
        self.run_cmd("goal add Comida 500 Alimentação")

        output = self.run_cmd("report current-month --categories")
        self.assertIn("Report: current-month", output)
        self.assertIn("Transactions: 2", output)
        self.assertIn("Alimentação: R$ 300,00", output)
        self.assertIn("Comida (Limite de Gasto)", output)

        output = self.run_cmd("report 2024-02")
        self.assertIn("Transactions: 1", output)

    def test_save_and_load(self):
        with tempfile.TemporaryDirectory() as tmp, patch.object(storage, "SAVES_DIR", Path(tmp)):
            self.run_cmd("add 50 outcome")
            self.assertIn("✓ Saved as 'test_cli'", self.run_cmd("save test_cli"))

            self.state.clear()
            output = self.run_cmd("load test_cli")
            self.assertIn("Loaded 1 transactions", output)
            self.assertEqual(len(self.state.transactions), 1)

            self.assertIn("test_cli", self.run_cmd("load"))

    def test_export(self):
        self.run_cmd("add 50 outcome")
        with tempfile.TemporaryDirectory() as tmp:
            output = self.run_cmd(f"export {tmp} all")
            self.assertIn("Saved transactions.csv (1 rows)", output)
            self.assertTrue((Path(tmp) / "cards.csv").exists())

    def test_load_missing_save_keeps_state(self):
        """A mistyped save name must not wipe the session"""
        with tempfile.TemporaryDirectory() as tmp, patch.object(storage, "SAVES_DIR", Path(tmp)):
            self.run_cmd("add 50 outcome")
            self.run_cmd("save default")

            output = self.run_cmd("load defualt")
            self.assertIn("Save file 'defualt' not found", output)
            self.assertNotIn("✓ Loaded", output)
            self.assertEqual(len(self.state.transactions), 1)

            (Path(tmp) / "broken.json").write_text("{not json", encoding="utf-8")
            self.assertIn("not found or unreadable", self.run_cmd("load broken"))
            self.assertEqual(len(self.state.transactions), 1)
            self.assertEqual(len(storage.load_state("default").transactions), 1)

    def test_edit_transaction(self):
        self.run_cmd("add 50 outcome Alimentação 2024-03-10 --name Mercado")
        transaction = self.state.transactions[0]

        output = self.run_cmd(f'edit {transaction.id} amount=75.5 "name=Feira livre" date=2024-03-12')
        self.assertIn(f"✓ Updated transaction {transaction.id}", output)
        self.assertEqual(transaction.amount, 75.5)
        self.assertEqual(transaction.name, "Feira livre")
        self.assertEqual(transaction.t_date, date(2024, 3, 12))

        self.assertIn("Invalid input", self.run_cmd(f"edit {transaction.id} type=expense"))
        self.assertIn("Invalid input", self.run_cmd(f"edit {transaction.id} colour=red"))
        self.assertIn("Invalid input", self.run_cmd(f"edit {transaction.id}"))
        self.assertIn("Transaction not found", self.run_cmd("edit 1 amount=5"))
        self.assertEqual(transaction.t_type, "outcome")

    def test_edit_card_and_goal(self):
        self.run_cmd("card add Nubank 1000 Mastercard --closing 3 --due 10")
        card = self.state.cards[0]
        self.assertIn("✓ Updated card", self.run_cmd(f"card edit {card.id} limit=2000 closing=5 due=-"))
        self.assertEqual((card.limit, card.closing_day, card.due_day), (2000.0, 5, None))
        self.assertIn("Invalid input", self.run_cmd(f"card edit {card.id} closing=40"))
        self.assertEqual(card.closing_day, 5)
        self.assertIn("Card not found", self.run_cmd("card edit 1 limit=5"))

        self.run_cmd("goal add Reserva 1000 Outros savings")
        goal = self.state.goals[0]
        output = self.run_cmd(f'goal edit {goal.id} target=1500 "name=Reserva de emergência" type=investment')
        self.assertIn("✓ Updated goal", output)
        self.assertEqual(goal.amount, 1500.0)
        self.assertEqual(goal.name, "Reserva de emergência")
        self.assertIs(goal.kind, GoalType.INVESTMENT)
        self.assertIn("Goal not found", self.run_cmd("goal edit 1 target=5"))

    def test_months(self):
        self.run_cmd("add 10 outcome Outros 2024-01-05")
        output = self.run_cmd("months")
        self.assertIn("2024-03", output)
        self.assertIn("2024-01", output)
        self.assertLess(output.index("2024-03"), output.index("2024-01"))

    def test_report_top_and_monthly(self):
        self.run_cmd("add 300 outcome Alimentação 2024-03-02")
        self.run_cmd("add 100 outcome Transporte 2024-03-05")
        self.run_cmd("add 50 outcome Lazer 2024-02-10")

        output = self.run_cmd("report all --top --monthly")
        self.assertIn("Top Categories:", output)
        self.assertIn("1. Alimentação: R$ 300,00", output)
        self.assertIn("3. Lazer: R$ 50,00", output)
        self.assertIn("Last 6 Months:", output)
        self.assertIn("2023-10: R$ 0,00", output)
        self.assertIn("2024-02: R$ 50,00", output)
        self.assertIn("2024-03: R$ 400,00", output)

    def test_backup_and_import(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "backup.json"
            self.run_cmd("add 50 outcome")
            self.assertIn("✓ Backup written", self.run_cmd(f"backup {path}"))
            self.assertEqual(len(json.loads(path.read_text(encoding="utf-8"))["transactions"]), 1)

            self.run_cmd("add 20 outcome")
            self.assertIn("✓ Data replaced", self.run_cmd(f"import {path}"))
            self.assertEqual(len(self.state.transactions), 1)

            max_id = self.state.transactions[0].id
            self.assertIn("✓ Data merged", self.run_cmd(f"import {path} --merge"))
            self.assertEqual([t.id for t in self.state.transactions], [max_id, max_id + 1])

    def test_import_bad_file(self):
        self.run_cmd("add 50 outcome")
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "broken.json"
            path.write_text("{not json", encoding="utf-8")
            self.assertIn("Error importing file", self.run_cmd(f"import {path}"))
            self.assertIn("Error importing file", self.run_cmd(f"import {Path(tmp) / 'missing.json'}"))
        self.assertEqual(len(self.state.transactions), 1)
        self.assertIn("Usage", self.run_cmd("import"))

    def test_backup_default_name_with_date_clock(self):
        cli = FinanceCLI(self.state, clock=lambda: date(2024, 3, 15), stdout=self.out)
        with patch("myfinance.cli.export_backup") as export:
            cli.onecmd("backup")
        self.assertEqual(export.call_args[0][1], Path("myfinance_backup_2024-03-15.json"))

    def test_exit(self):
        self.assertTrue(self.cli.onecmd("exit"))


class TestMain(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.patcher = patch.object(storage, "SAVES_DIR", Path(self.tmp.name))
        self.patcher.start()

    def tearDown(self):
        self.patcher.stop()
        self.tmp.cleanup()

    def test_session_is_saved_on_exit(self):
        with patch.object(FinanceCLI, "cmdloop"):
            main()
        self.assertTrue(storage.save_path(DEFAULT_SAVE_NAME).exists())

    def test_unreadable_default_is_not_overwritten(self):
        """A save that failed to parse at startup survives the exit"""
        path = storage.save_path(DEFAULT_SAVE_NAME)
        path.write_text("{not json", encoding="utf-8")
        with patch.object(FinanceCLI, "cmdloop"), patch("builtins.print"):
            main()
        self.assertEqual(path.read_text(encoding="utf-8"), "{not json")

    def test_existing_default_round_trips(self):
        storage.save_state(FinanceState(transactions=[make_transaction(1, 10.0)]), DEFAULT_SAVE_NAME)
        with patch.object(FinanceCLI, "cmdloop"):
            main()
        self.assertEqual(len(storage.load_state(DEFAULT_SAVE_NAME).transactions), 1)


if __name__ == "__main__":
    unittest.main()
