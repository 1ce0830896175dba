# app/models/__init__.py
# Import every model so relationship() targets resolve wherever the package is used.

from .user import User
from .order import Order, OrderStatus
from .distribution import (
    Distributor,
    DistributorStatus,
    DistributionOrder,
    DistributionOrderStatus,
    RiskLevel,
)
from .withdrawal import CommissionWithdrawal, WithdrawalStatus
from .security_alert import SecurityAlert, SecurityAlertStatus, SecurityAlertType
from .system_config import SystemConfig

__all__ = [
    "User",
    "Order",
    "OrderStatus",
    "Distributor",
    "DistributorStatus",
    "DistributionOrder",
    "DistributionOrderStatus",
    "RiskLevel",
    "CommissionWithdrawal",
    "WithdrawalStatus",
    "SecurityAlert",
    "SecurityAlertStatus",
    "SecurityAlertType",
    "SystemConfig",
]
