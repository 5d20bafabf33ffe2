"""
Schemas Pydantic para las métricas del dashboard
Proyecto: Control de Formatos (SGV)
"""

from decimal import Decimal

from pydantic import BaseModel, Field


class DashboardMetrics(BaseModel):
    """Resumen general de pedidos y formatos."""
    total_orders: int = 0
    pending_orders: int = Field(0, description="Pedidos por recoger")
    completed_orders: int = Field(0, description="Pedidos recogidos")
    total_amount: Decimal = Decimal("0")
    paid_amount: Decimal = Decimal("0")
    unpaid_amount: Decimal = Decimal("0")
    available_units: int = 0
    assigned_units: int = 0
    delivered_units: int = 0
