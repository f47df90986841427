"""
总账模型 - 复式记账
分录一经写入不可修改，同一笔过账的借贷方金额必须相等
"""

import enum
from datetime import datetime
from decimal import Decimal
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, DECIMAL
from sqlalchemy.orm import relationship
from app.db.base import Base


class AccountType(str, enum.Enum):
    ASSET = "ASSET"
    LIABILITY = "LIABILITY"
    EQUITY = "EQUITY"
    REVENUE = "REVENUE"
    EXPENSE = "EXPENSE"


class EntryType(str, enum.Enum):
    DEBIT = "DEBIT"
    CREDIT = "CREDIT"


class LedgerAccount(Base):
    """总账科目"""
    __tablename__ = "ledger_accounts"

    id = Column(Integer, primary_key=True, index=True)
    account_code = Column(String(20), unique=True, nullable=False, index=True, comment="科目编码")
    account_name = Column(String(100), nullable=False, comment="科目名称")
    account_type = Column(String(20), nullable=False, comment="科目类型")
    current_balance = Column(DECIMAL(14, 2), nullable=False, default=Decimal("0.00"), comment="当前余额")
    created_at = Column(DateTime, default=datetime.utcnow)

    entries = relationship("LedgerEntry", back_populates="account")

    def __repr__(self):
        return f"<LedgerAccount {self.account_code} {self.account_name} ¥{self.current_balance}>"

    def balance_change(self, entry_type: str, amount: Decimal) -> Decimal:
        """借贷方向对余额的影响：资产/费用借增贷减，其余贷增借减"""
        debit_normal = self.account_type in (AccountType.ASSET.value, AccountType.EXPENSE.value)
        is_debit = entry_type == EntryType.DEBIT.value
        return amount if debit_normal == is_debit else -amount


class LedgerEntry(Base):
    """总账分录"""
    __tablename__ = "ledger_entries"

    id = Column(Integer, primary_key=True, index=True)
    account_id = Column(Integer, ForeignKey("ledger_accounts.id"), nullable=False, index=True)
    # 同一笔过账的分录共享一个 transaction_id
    transaction_id = Column(String(64), nullable=False, index=True, comment="过账批次号")
    entry_type = Column(String(10), nullable=False, comment="借/贷")
    amount = Column(DECIMAL(14, 2), nullable=False, comment="金额")
    entry_date = Column(DateTime, nullable=False, comment="记账日期")
    description = Column(Text, comment="摘要")

    customer_id = Column(Integer, ForeignKey("customers.id"), index=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id"), index=True)

    created_by = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    account = relationship("LedgerAccount", back_populates="entries")

    def __repr__(self):
        return f"<LedgerEntry {self.transaction_id} {self.entry_type} ¥{self.amount}>"
