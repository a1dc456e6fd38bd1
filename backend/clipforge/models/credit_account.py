"""Credit account model."""
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, CheckConstraint

from clipforge.db.database import Base


class CreditAccount(Base):
    """Prepaid credit balance for a user. One credit funds one minute of video."""

    __tablename__ = "credit_accounts"
    __table_args__ = (
        CheckConstraint("balance >= 0", name="ck_credit_accounts_balance_non_negative"),
    )

    user_id = Column(String(255), primary_key=True, index=True)
    email = Column(String(320), nullable=True, unique=True)
    balance = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<CreditAccount(user={self.user_id}, balance={self.balance})>"
