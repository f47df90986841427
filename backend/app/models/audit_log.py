"""
操作日志模型 - 审计追踪
销售单创建和每次状态变更成功后各写入一条
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.types import JSON
from app.db.base import Base


class AuditLog(Base):
    """操作日志"""
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)

    # 操作人
    user_id = Column(Integer, nullable=False, index=True)

    # 操作类型，如 CREATE_SALES_ORDER、SALES_ORDER_SUBMIT、SALES_ORDER_INVOICE
    action = Column(String(50), nullable=False, index=True, comment="操作类型")

    # 资源类型与ID，如 SalesOrder:12
    resource_type = Column(String(50), nullable=False, index=True, comment="资源类型")
    resource_id = Column(Integer, index=True, comment="资源ID")
    resource_name = Column(String(100), comment="资源名称/单号")

    description = Column(String(500), comment="操作描述")
    new_value = Column(JSON, comment="附加数据")

    ip_address = Column(String(50), comment="IP地址")
    user_agent = Column(String(300), comment="客户端标识")

    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    def __repr__(self):
        return f"<AuditLog {self.action} {self.resource_type}:{self.resource_id}>"
