from decimal import Decimal
from typing import Iterable, List

from kladde.data_models.settlement import CashBalance, EntryItem, GamedayCashBalance
from kladde.utils.money import round2, money_sum, to_money


class CashBalanceAggregator:
    """Running club cash balance from payments, line items and expenses"""

    @staticmethod
    def compute(starting_balance: Decimal, payments: Iterable[Decimal], income: Iterable[Decimal],
                costs: Iterable[Decimal], expenses: Iterable[Decimal]) -> CashBalance:
        start = to_money(starting_balance)
        total_paid = money_sum(payments)
        total_income = money_sum(income)
        total_costs = money_sum(costs)
        total_expenses = money_sum(expenses)
        return CashBalance(
            starting_balance=start,
            total_paid=total_paid,
            total_income=total_income,
            total_costs=total_costs,
            total_expenses=total_expenses,
            balance=round2(start + total_paid + total_income - total_costs - total_expenses),
        )

    @staticmethod
    def for_gameday(overall: CashBalance, gameday_id: int, gameday_payments: Iterable[Decimal],
                    income_items: List[EntryItem], cost_items: List[EntryItem]) -> GamedayCashBalance:
        """Derive the balance before a gameday by taking its own contributions back out of the total"""
        gameday_paid = money_sum(gameday_payments)
        gameday_income = money_sum(item.amount for item in income_items)
        gameday_costs = money_sum(item.amount for item in cost_items)
        return GamedayCashBalance(
            gameday_id=gameday_id,
            previous_balance=round2(overall.balance - gameday_paid - gameday_income + gameday_costs),
            gameday_paid=gameday_paid,
            gameday_income=gameday_income,
            gameday_costs=gameday_costs,
            balance=overall.balance,
            income_items=list(income_items),
            cost_items=list(cost_items),
        )
