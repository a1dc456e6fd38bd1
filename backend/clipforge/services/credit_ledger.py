"""Credit ledger: balance checks and guarded debits."""
import logging
import math

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from clipforge.errors import InsufficientCreditsError
from clipforge.models.credit_account import CreditAccount

logger = logging.getLogger(__name__)


def required_credits(duration_seconds: float) -> int:
    """One credit per started minute of source video."""
    return int(math.ceil(duration_seconds / 60))


class CreditLedger:
    """Reads and debits credit balances.

    There is deliberately no refund operation: a failed run simply never
    calls ``debit``.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_balance(self, user_id: str) -> int:
        """Current balance, 0 when the user has no account."""
        result = await self.db.execute(
            select(CreditAccount.balance).where(CreditAccount.user_id == user_id)
        )
        balance = result.scalar_one_or_none()
        return int(balance or 0)

    async def check_balance(self, user_id: str, required: int) -> bool:
        """Whether the user can afford ``required`` credits."""
        return await self.get_balance(user_id) >= required

    async def debit(self, user_id: str, units: int, redirect_url: str = "/credits") -> None:
        """
        Subtract ``units`` from the balance.

        The UPDATE only applies while the balance still covers it, so the
        balance never goes below zero. Does not commit.

        Raises:
            InsufficientCreditsError: If the balance no longer covers ``units``
        """
        if units < 0:
            raise ValueError("Debit units must be non-negative")

        result = await self.db.execute(
            update(CreditAccount)
            .where(CreditAccount.user_id == user_id, CreditAccount.balance >= units)
            .values(balance=CreditAccount.balance - units)
            .execution_options(synchronize_session=False)
        )

        if result.rowcount != 1:
            balance = await self.get_balance(user_id)
            raise InsufficientCreditsError(units, balance, redirect_url)

        logger.info(f"Debited {units} credits from {user_id}")
