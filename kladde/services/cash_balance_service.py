"""
Cash balance service.

The club cash is the configured starting balance plus everything members paid
and every manual income entry, minus manual cost entries and club expenses.
A gameday's lane_cost is informational; the cash only sees it once it is
booked as a cost entry.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Any, List, Optional, Union
from sqlalchemy import select

from kladde.data_models.settlement import CashBalance, EntryItem, GamedayCashBalance
from kladde.database.models import Attendance, EntryType, Expense, Gameday, GamedayEntry
from kladde.services.base import BaseService
from kladde.services.configuration import ConfigurationService
from kladde.utils.cash_balance import CashBalanceAggregator
from kladde.utils.date_parser import parse_date
from kladde.utils.exceptions import NotFoundError, ValidationError
from kladde.utils.money import ZERO, parse_money

logger = logging.getLogger(__name__)

EXPENSE_DESCRIPTION_MAX_LENGTH = 200


class CashBalanceService(BaseService):
    """Club cash balance and the expense ledger."""

    def __init__(self, database, config_service: ConfigurationService):
        super().__init__(database.session_factory)
        self.config_service = config_service

    async def compute_cash_balance(self) -> CashBalance:
        async with self.get_session() as session:
            return await self._compute(session)

    async def compute_cash_balance_for_gameday(self, gameday_id: int) -> GamedayCashBalance:
        """
        Balance before and after one gameday, with its income and cost items.

        Raises:
            NotFoundError: If the gameday does not exist
        """
        async with self.get_session() as session:
            if await session.get(Gameday, gameday_id) is None:
                raise NotFoundError("Spieltag", gameday_id)

            overall = await self._compute(session)

            result = await session.execute(select(Attendance.paid).where(Attendance.gameday_id == gameday_id))
            gameday_payments = list(result.scalars().all())

            result = await session.execute(
                select(GamedayEntry)
                .where(GamedayEntry.gameday_id == gameday_id)
                .order_by(GamedayEntry.sort_order, GamedayEntry.id)
            )
            income_items, cost_items = [], []
            for entry in result.scalars().all():
                item = EntryItem(entry.id, entry.name, entry.amount)
                if entry.entry_type == EntryType.INCOME:
                    income_items.append(item)
                else:
                    cost_items.append(item)

        return CashBalanceAggregator.for_gameday(overall, gameday_id, gameday_payments, income_items, cost_items)

    async def set_starting_balance(self, amount: Any) -> Decimal:
        try:
            amount = parse_money(amount)
        except ValueError:
            raise ValidationError('starting_balance', f"not a currency amount: {amount!r}")
        return await self.config_service.set_starting_balance(amount)

    # Expenses

    async def add_expense(self, amount: Any, description: str,
                          expense_date: Optional[Union[str, date]] = None) -> Expense:
        amount, description = self._validate_expense(amount, description)
        expense_date = self._parse_expense_date(expense_date)

        async with self.get_session() as session:
            expense = Expense(amount=amount, description=description, expense_date=expense_date)
            session.add(expense)

        logger.info(f"Added expense {expense.id}: {description} ({amount}) on {expense_date}")
        return expense

    async def update_expense(self, expense_id: int, amount: Any, description: str,
                             expense_date: Optional[Union[str, date]] = None) -> Expense:
        amount, description = self._validate_expense(amount, description)

        async with self.get_session() as session:
            expense = await session.get(Expense, expense_id)
            if expense is None:
                raise NotFoundError("Ausgabe", expense_id)
            expense.amount = amount
            expense.description = description
            if expense_date is not None:
                expense.expense_date = self._parse_expense_date(expense_date)

        return expense

    async def delete_expense(self, expense_id: int):
        async with self.get_session() as session:
            expense = await session.get(Expense, expense_id)
            if expense is None:
                raise NotFoundError("Ausgabe", expense_id)
            await session.delete(expense)

        logger.info(f"Deleted expense {expense_id}")

    async def list_expenses(self) -> List[Expense]:
        """All expenses, newest first"""
        async with self.get_session() as session:
            result = await session.execute(
                select(Expense).order_by(Expense.expense_date.desc(), Expense.id.desc())
            )
            return list(result.scalars().all())

    async def _compute(self, session) -> CashBalance:
        # Summed in Python so every term is the exact two-place Decimal
        payments = (await session.execute(select(Attendance.paid))).scalars().all()
        result = await session.execute(select(GamedayEntry.entry_type, GamedayEntry.amount))
        income, costs = [], []
        for entry_type, amount in result.all():
            (income if entry_type == EntryType.INCOME else costs).append(amount)
        expenses = (await session.execute(select(Expense.amount))).scalars().all()

        return CashBalanceAggregator.compute(
            self.config_service.starting_balance, payments, income, costs, expenses
        )

    @staticmethod
    def _validate_expense(amount: Any, description: str):
        try:
            amount = parse_money(amount)
        except ValueError:
            raise ValidationError('amount', f"not a currency amount: {amount!r}")
        if amount <= ZERO:
            raise ValidationError('amount', 'must be greater than zero', "❌ Betrag muss größer als 0 sein.")
        description = (description or '').strip()
        if not description:
            raise ValidationError('description', 'must not be empty', "❌ Beschreibung darf nicht leer sein.")
        return amount, description[:EXPENSE_DESCRIPTION_MAX_LENGTH]

    @staticmethod
    def _parse_expense_date(value: Optional[Union[str, date]]) -> date:
        if value is None:
            return date.today()
        return parse_date(value, "expense_date")
