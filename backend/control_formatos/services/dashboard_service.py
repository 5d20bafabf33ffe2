"""
Métricas del dashboard
Proyecto: Control de Formatos (SGV)
"""

import logging
from decimal import Decimal

from control_formatos.schemas import DashboardMetrics, OrderStatus, PaymentStatus, UnitStatus
from control_formatos.storage.base import Store

logger = logging.getLogger(__name__)


class DashboardService:
    """Resumen de pedidos, montos y formatos por estado."""

    def __init__(self, store: Store) -> None:
        self.store = store

    async def get_metrics(self) -> DashboardMetrics:
        async with self.store.unit_of_work() as uow:
            orders = await uow.orders.list()
            unit_counts = await uow.units.count_by_status()

        paid = sum((o.amount for o in orders if o.payment_status == PaymentStatus.PAID), Decimal("0"))
        total = sum((o.amount for o in orders), Decimal("0"))

        metrics = DashboardMetrics(
            total_orders=len(orders),
            pending_orders=sum(1 for o in orders if o.status == OrderStatus.PENDING_PICKUP),
            completed_orders=sum(1 for o in orders if o.status == OrderStatus.PICKED_UP),
            total_amount=total,
            paid_amount=paid,
            unpaid_amount=total - paid,
            available_units=unit_counts.get(UnitStatus.AVAILABLE.value, 0),
            assigned_units=unit_counts.get(UnitStatus.ASSIGNED.value, 0),
            delivered_units=unit_counts.get(UnitStatus.DELIVERED.value, 0),
        )
        logger.debug("Métricas calculadas: %s pedidos", metrics.total_orders)
        return metrics
