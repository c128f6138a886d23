import cmd
import shlex
from datetime import date, datetime
from pathlib import Path
from typing import Callable, Optional

from myfinance.config import DEFAULT_SAVE_NAME
from myfinance.logic import (
    add_transaction,
    edit_transaction,
    delete_transaction,
    add_card,
    edit_card,
    set_card_used,
    delete_card,
    add_goal,
    edit_goal,
    find_goal,
    delete_goal,
    add_goal_value,
    subtract_goal_value,
    reset_goal,
)
from myfinance.models import FinanceState, GoalType, TRANSACTION_STATUSES
from myfinance.periods import (
    RollingWindow, filter_by_period, filter_transactions, parse_period, describe_period, includes_card_spend,
    available_months, as_day,
)
from myfinance.progress import progress_for_all, format_currency, goal_type_label, percent_of
from myfinance.reports import (
    summarize, category_summary, top_categories, monthly_expenses, goal_comparison, export_csvs,
)
from myfinance.storage import save_state, load_into, list_save_files, import_backup_file, export_backup

CURRENT_MONTH = RollingWindow("current-month")


def _day(value: str) -> Optional[int]:
    return None if value in ("", "-") else int(value)


# command key -> (model field, converter)
TRANSACTION_FIELDS = {
    'name': ('name', str),
    'amount': ('amount', float),
    'type': ('t_type', str.lower),
    'category': ('category', str),
    'date': ('t_date', date.fromisoformat),
    'status': ('status', str),
}
CARD_FIELDS = {
    'name': ('name', str),
    'brand': ('brand', str),
    'limit': ('limit', float),
    'used': ('used', float),
    'closing': ('closing_day', _day),
    'due': ('due_day', _day),
}
GOAL_FIELDS = {
    'name': ('name', str),
    'target': ('amount', float),
    'category': ('category', str),
    'type': ('g_type', str),
}


class FinanceCLI(cmd.Cmd):
    prompt = "(finance) "

    def __init__(self, state: Optional[FinanceState] = None, clock: Callable[[], datetime] = datetime.now,
                 stdout=None):
        super().__init__(stdout=stdout)
        self.state = state if state is not None else FinanceState()
        self.clock = clock
        self.intro = "Welcome to MyFinance. Type 'help' for commands."

    def _print(self, text=""):
        self.stdout.write(f"{text}\n")

    # ===== TRANSACTIONS =====
    def do_add(self, arg):
        """Add a transaction: add <amount> <income|outcome> [category] [YYYY-MM-DD] [--status <paid|received|pending>] [--name "name"]"""
        try:
            args = self._parse_add_args(arg, self.clock())
            transaction = add_transaction(
                self.state,
                name=args['name'],
                amount=args['amount'],
                t_type=args['type'],
                category=args['category'],
                t_date=args['date'],
                status=args['status'],
            )
            self._print(f"✓ Added {transaction.t_type} '{transaction.name}' of "
                        f"{format_currency(transaction.amount)} (id {transaction.id})")
        except ValueError as e:
            self._print(f"Invalid input: {e}")

    def do_list(self, arg):
        """List transactions: list [--period <all|current-month|last-month|last-3-months|last-6-months|last-year|YYYY-MM|YYYY>] [--type income|outcome] [--category NAME] [--search TEXT]"""
        try:
            args = self._parse_list_args(arg)
        except ValueError as e:
            self._print(f"Invalid input: {e}")
            return

        selected = filter_by_period(self.state.transactions, args['period'], self.clock())
        selected = filter_transactions(selected, args['search'], args['type'], args['category'])
        if not selected:
            self._print("No transactions found")
            return

        for t in sorted(selected, key=lambda t: t.t_date, reverse=True):
            sign = "+" if t.t_type == "income" else "-"
            self._print(f"  [{t.id}] {t.t_date.isoformat()}  {t.name:<20} {t.category:<18} "
                        f"{sign}{format_currency(t.amount)}  ({t.status})")

    def do_edit(self, arg):
        """Edit a transaction: edit <ID> field=value ...
        Fields: name, amount, type, category, date (YYYY-MM-DD), status"""
        try:
            args = shlex.split(arg)
            if len(args) < 2:
                raise ValueError("Usage: edit <ID> field=value ...")
            changes = self._parse_changes(args[1:], TRANSACTION_FIELDS)
            found = edit_transaction(self.state, int(args[0]), **changes)
        except ValueError as e:
            self._print(f"Invalid input: {e}")
            return

        if found:
            self._print(f"✓ Updated transaction {args[0]}")
        else:
            self._print("Transaction not found")

    def do_months(self, arg):
        """List the months that have transactions, newest first"""
        for key in available_months(self.state.transactions, self.clock()):
            self._print(f"  {key}")

    def do_delete(self, arg):
        """Delete a transaction: delete <ID>"""
        args = arg.split()
        if not args or not args[0].isdigit():
            self._print("Usage: delete <ID>")
            return

        if delete_transaction(self.state, int(args[0])):
            self._print(f"✓ Deleted transaction {args[0]}")
        else:
            self._print("Transaction not found")

    # ===== CARDS =====
    def do_card(self, arg):
        """Manage cards: card <add|list|edit|use|delete> ...
        card add <name> <limit> [brand] [--closing DAY] [--due DAY]
        card edit <ID> field=value ... (name, brand, limit, used, closing, due)
        card use <ID> <used amount>
        card delete <ID>"""
        try:
            args = shlex.split(arg)
        except ValueError as e:
            self._print(f"Invalid input: {e}")
            return
        if not args:
            self._print(self.do_card.__doc__)
            return

        try:
            if args[0] == "add":
                options = self._parse_card_args(args[1:])
                card = add_card(self.state, **options)
                self._print(f"✓ Added card: {card.name} (id {card.id})")
            elif args[0] == "list":
                if not self.state.cards:
                    self._print("No cards registered")
                    return
                self._print("\nCards:")
                for card in self.state.cards:
                    self._print(f"  [{card.id}] {card.name} {card.brand}: used {format_currency(card.used)} of "
                                f"{format_currency(card.limit)} ({card.percent_used:.0f}%), "
                                f"available {format_currency(card.available)}, "
                                f"closes {card.closing_day or '-'}, due {card.due_day or '-'}")
            elif args[0] == "edit":
                changes = self._parse_changes(args[2:], CARD_FIELDS)
                if edit_card(self.state, int(args[1]), **changes):
                    self._print(f"✓ Updated card {args[1]}")
                else:
                    self._print(f"Card not found: {args[1]}")
            elif args[0] == "use":
                card_id, used = int(args[1]), float(args[2])
                if set_card_used(self.state, card_id, used):
                    self._print(f"✓ Card {card_id} now has {format_currency(used)} used")
                else:
                    self._print(f"Card not found: {card_id}")
            elif args[0] == "delete":
                if delete_card(self.state, int(args[1])):
                    self._print(f"✓ Deleted card {args[1]}")
                else:
                    self._print(f"Card not found: {args[1]}")
            else:
                self._print(self.do_card.__doc__)
        except (ValueError, IndexError) as e:
            self._print(f"Invalid input: {e}")

    # ===== GOALS =====
    def do_goal(self, arg):
        """Manage goals: goal <add|list|edit|deposit|withdraw|reset|delete> ...
        goal add <name> <target> <category> [expense_limit|savings|investment|debt_payment]
        goal edit <ID> field=value ... (name, target, category, type)
        goal deposit <ID> <value>
        goal withdraw <ID> <value>
        goal reset <ID>
        goal delete <ID>"""
        try:
            args = shlex.split(arg)
        except ValueError as e:
            self._print(f"Invalid input: {e}")
            return
        if not args:
            self._print(self.do_goal.__doc__)
            return

        try:
            if args[0] == "add":
                g_type = args[4] if len(args) > 4 else GoalType.EXPENSE_LIMIT.value
                goal = add_goal(self.state, name=args[1], amount=float(args[2]), category=args[3], g_type=g_type)
                self._print(f"✓ Added goal: {goal.name} (id {goal.id})")
            elif args[0] == "list":
                self._print_goals()
            elif args[0] == "edit":
                changes = self._parse_changes(args[2:], GOAL_FIELDS)
                if edit_goal(self.state, int(args[1]), **changes):
                    self._print(f"✓ Updated goal {args[1]}")
                else:
                    self._print(f"Goal not found: {args[1]}")
            elif args[0] in ("deposit", "withdraw", "reset"):
                goal = find_goal(self.state, int(args[1]))
                if goal is None:
                    self._print(f"Goal not found: {args[1]}")
                    return
                if args[0] == "deposit":
                    saved = add_goal_value(goal, float(args[2]))
                elif args[0] == "withdraw":
                    saved = subtract_goal_value(goal, float(args[2]))
                else:
                    saved = reset_goal(goal)
                self._print(f"✓ {goal.name}: {format_currency(saved)} saved")
            elif args[0] == "delete":
                if delete_goal(self.state, int(args[1])):
                    self._print(f"✓ Deleted goal {args[1]}")
                else:
                    self._print(f"Goal not found: {args[1]}")
            else:
                self._print(self.do_goal.__doc__)
        except (ValueError, IndexError) as e:
            self._print(f"Invalid input: {e}")

    def _print_goals(self):
        if not self.state.goals:
            self._print("No goals defined")
            return

        month = filter_by_period(self.state.transactions, CURRENT_MONTH, self.clock())
        self._print("\nGoals:")
        for goal, progress in progress_for_all(self.state.goals, month, self.state.cards):
            self._print(f"  [{goal.id}] {goal.name} ({goal_type_label(goal)}, {goal.category})")
            self._print(f"      {format_currency(progress.current)} of {format_currency(progress.target)} "
                        f"- {progress.percent:.0f}% - {progress.status_label}")
            self._print(f"      {progress.message}")

    # ===== REPORTS =====
    def do_summary(self, arg):
        """Show the current month dashboard: income, outcome (cards included) and balance"""
        now = self.clock()
        month = filter_by_period(self.state.transactions, CURRENT_MONTH, now)
        totals = summarize(month, self.state.cards)

        self._print(f"\n{' ' + now.strftime('%m/%Y') + ' ':-^50}")
        self._print(f"  Income:   {format_currency(totals['income'])}")
        self._print(f"  Outcome:  {format_currency(totals['outcome'])}")
        self._print(f"  Balance:  {format_currency(totals['balance'])}")
        self._print(f"  {totals['committed_percent']:.0f}% of income committed")

    def do_report(self, arg):
        """
        Generate a report:
        report [period] [--categories] [--top] [--monthly]

        --top lists the five largest spending categories,
        --monthly the outcome totals of the last six months.

        Periods:
            all, current-month, last-month, last-3-months, last-6-months, last-year,
            YYYY-MM (a month), YYYY (a year)
        """
        args = arg.split()
        flags = {a for a in args if a.startswith("--")}
        args = [a for a in args if not a.startswith("--")]
        show_categories = "--categories" in flags
        selector = parse_period(args[0] if args else "all")
        now = self.clock()

        transactions = filter_by_period(self.state.transactions, selector, now)
        income = sum(t.amount for t in transactions if t.t_type == "income")
        outcome = sum(t.amount for t in transactions if t.t_type == "outcome")

        self._print(f"\n{' Report: ' + describe_period(selector) + ' ':-^50}")
        self._print(f"  Transactions: {len(transactions)}")
        self._print(f"  Income:   {format_currency(income)}")
        self._print(f"  Outcome:  {format_currency(outcome)}")
        self._print(f"  Balance:  {format_currency(income - outcome)}")

        if show_categories:
            categories, total = category_summary(transactions, self.state.cards, includes_card_spend(selector))
            self._print("\nBy Category:")
            for name, data in sorted(categories.items(), key=lambda item: item[1]["total"], reverse=True):
                share = percent_of(data["total"], total)
                self._print(f"  {name}: {format_currency(data['total'])} ({data['count']} items, {share:.1f}%)")

        if "--top" in flags:
            self._print("\nTop Categories:")
            ranked = top_categories(transactions, self.state.cards, includes_card_spend(selector))
            for i, (name, total) in enumerate(ranked, 1):
                self._print(f"  {i}. {name}: {format_currency(total)}")

        if "--monthly" in flags:
            self._print("\nLast 6 Months:")
            for key, total in monthly_expenses(self.state.transactions, now):
                self._print(f"  {key}: {format_currency(total)}")

        comparison = goal_comparison(self.state, selector, now)
        if comparison:
            self._print("\nGoals:")
            for name, type_label, progress in comparison:
                self._print(f"  {name} ({type_label}): {format_currency(progress.current)} / "
                            f"{format_currency(progress.target)} - {progress.percent:.0f}%")

    def do_export(self, arg):
        """Export report CSVs: export <directory> [period]"""
        args = arg.split()
        if not args:
            self._print("Usage: export <directory> [period]")
            return

        selector = parse_period(args[1] if len(args) > 1 else "all")
        try:
            written = export_csvs(self.state, selector, self.clock(), Path(args[0]))
        except OSError as e:
            self._print(f"Error exporting: {e}")
            return
        for filename, rows in written.items():
            self._print(f"  Saved {filename} ({rows} rows)")

    # ===== DATA MANAGEMENT =====
    def do_save(self, arg):
        """Save current data: save [name=default]"""
        name = arg.strip() or DEFAULT_SAVE_NAME
        if save_state(self.state, name):
            self._print(f"✓ Saved as '{name}'")
        else:
            self._print(f"Could not save '{name}'")

    def do_load(self, arg):
        """Load saved data: load [name]"""
        name = arg.strip()
        if not name:
            saves = list_save_files()
            if not saves:
                self._print("No save files available")
                return
            self._print("Available saves:")
            for i, save in enumerate(saves, 1):
                self._print(f"{i}. {save}")
            return

        if not load_into(self.state, name):
            self._print(f"Save file '{name}' not found or unreadable")
            return
        self._print(f"✓ Loaded {len(self.state.transactions)} transactions, {len(self.state.cards)} cards, "
                    f"{len(self.state.goals)} goals")

    def do_backup(self, arg):
        """Write a JSON backup: backup <file>"""
        path = arg.strip() or f"myfinance_backup_{as_day(self.clock()).isoformat()}.json"
        try:
            export_backup(self.state, Path(path))
        except OSError as e:
            self._print(f"Error writing backup: {e}")
            return
        self._print(f"✓ Backup written to {path}")

    def do_import(self, arg):
        """Import a JSON backup: import <file> [--merge]"""
        args = arg.split()
        if not args:
            self._print("Usage: import <file> [--merge]")
            return

        merge = "--merge" in args[1:]
        try:
            import_backup_file(self.state, Path(args[0]), replace=not merge)
        except (OSError, ValueError) as e:
            self._print(f"Error importing file: {e}")
            return
        self._print("✓ Data merged" if merge else "✓ Data replaced")

    # ===== UTILITIES =====
    def do_exit(self, arg):
        """Exit the program"""
        self._print("Goodbye!")
        return True

    # ===== HELPERS =====
    @staticmethod
    def _parse_add_args(arg, now: datetime):
        """Parse add command arguments with proper date handling"""
        args = shlex.split(arg)
        if len(args) < 2:
            raise ValueError("Missing required arguments (amount and type)")

        result = {
            'amount': float(args[0]),
            'type': args[1].lower(),
            'category': None,
            'date': now.date() if isinstance(now, datetime) else now,
            'status': None,
            'name': None,
        }

        if result['type'] not in ('income', 'outcome'):
            raise ValueError("Type must be 'income' or 'outcome'")

        i = 2
        while i < len(args):
            if args[i] == '--status':
                if i+1 >= len(args) or args[i+1] not in TRANSACTION_STATUSES:
                    raise ValueError("Invalid status, use: paid/received/pending")
                result['status'] = args[i+1]
                i += 2
            elif args[i] == '--name':
                result['name'] = ' '.join(args[i+1:])
                break
            elif args[i].startswith('--'):
                raise ValueError(f"Unknown flag: {args[i]}")
            else:
                try:
                    result['date'] = date.fromisoformat(args[i])
                    i += 1
                    continue
                except ValueError:
                    pass

                if result['category'] is None:
                    result['category'] = args[i]
                    i += 1
                else:
                    raise ValueError(f"Unexpected argument: {args[i]}")

        result['category'] = result['category'] or "Outros"
        result['name'] = result['name'] or result['category']
        return result

    @staticmethod
    def _parse_list_args(arg):
        args = shlex.split(arg)
        result = {
            'period': parse_period("all"),
            'type': None,
            'category': None,
            'search': None,
        }

        i = 0
        while i < len(args):
            if args[i] in ('--period', '--type', '--category', '--search'):
                if i+1 >= len(args):
                    raise ValueError(f"Missing value after {args[i]}")
                key = args[i][2:]
                result[key] = parse_period(args[i+1]) if key == 'period' else args[i+1]
                i += 2
            else:
                raise ValueError(f"Unexpected argument: {args[i]}")

        return result

    @staticmethod
    def _parse_changes(pairs, allowed):
        changes = {}
        for pair in pairs:
            key, sep, value = pair.partition('=')
            if not sep or key not in allowed:
                raise ValueError(f"Expected one of {', '.join(allowed)} as field=value, got: {pair}")
            field, convert = allowed[key]
            changes[field] = convert(value)
        return changes

    @staticmethod
    def _parse_card_args(args):
        if len(args) < 2:
            raise ValueError("Missing required arguments (name and limit)")

        result = {
            'name': args[0],
            'limit': float(args[1]),
            'brand': "",
            'closing_day': None,
            'due_day': None,
        }

        i = 2
        while i < len(args):
            if args[i] in ('--closing', '--due'):
                if i+1 >= len(args):
                    raise ValueError(f"Missing day after {args[i]}")
                key = 'closing_day' if args[i] == '--closing' else 'due_day'
                result[key] = int(args[i+1])
                i += 2
            elif not result['brand']:
                result['brand'] = args[i]
                i += 1
            else:
                raise ValueError(f"Unexpected argument: {args[i]}")

        return result


if __name__ == "__main__":
    FinanceCLI().cmdloop()
