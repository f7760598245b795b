"""
Balance Recalculation Engine

DESIGN DECISION: Stored balances are never patched in place.
After any insert or delete the full ledger is sorted by occurred_at and
every running balance is recomputed in one left-to-right pass:

    balance[i] = balance[i-1] + amount[i],  balance[-1] = 0

The sort is stable, so transactions sharing a timestamp keep their
file order.
"""

from datetime import datetime
from decimal import Decimal

from allowance_tracker.models.ledger import Transaction, to_money


ZERO = Decimal("0.00")


def recompute(transactions: list[Transaction]) -> list[Transaction]:
    """Return the ledger in chronological order with fresh running balances."""
    running = ZERO
    result = []
    for transaction in sorted(transactions, key=lambda tx: tx.occurred_at):
        running = to_money(running + transaction.amount)
        result.append(transaction.model_copy(update={"balance": running}))
    return result


def current_balance(transactions: list[Transaction]) -> Decimal:
    """Balance after the last transaction of a recomputed ledger."""
    if not transactions:
        return ZERO
    return transactions[-1].balance


def balance_at(transactions: list[Transaction], moment: datetime) -> Decimal:
    """Running balance of the last transaction at or before `moment`."""
    balance = ZERO
    for transaction in recompute(transactions):
        if transaction.occurred_at > moment:
            break
        balance = transaction.balance
    return balance


def find_balance_errors(transactions: list[Transaction]) -> list[str]:
    """
    Compare stored balances with recomputed ones.

    Returns one message per disagreeing transaction; empty when the
    ledger is consistent.
    """
    stored = {tx.id: tx.balance for tx in transactions}
    errors = []
    for transaction in recompute(transactions):
        if stored[transaction.id] != transaction.balance:
            errors.append(
                f"Transaction {transaction.id}: stored balance {stored[transaction.id]}, "
                f"expected {transaction.balance}"
            )
    return errors
