"""
Schemas Pydantic
Proyecto: Control de Formatos (SGV)

Los schemas ``*Read`` son también los registros que cruzan la frontera
de los repositorios, con cualquiera de los dos motores de almacenamiento.
"""

from control_formatos.schemas.batch import (
    BatchGroup,
    BatchRead,
    BatchStatus,
    BatchUpdate,
    PartitionResult,
    PendingIncrement,
    ReservedNumberRead,
)
from control_formatos.schemas.company import (
    CompanyCreate,
    CompanyRead,
    CompanyUpdate,
    FormTypeCreate,
    FormTypeRead,
    FormTypeUpdate,
)
from control_formatos.schemas.dashboard import DashboardMetrics
from control_formatos.schemas.order import (
    OrderCreate,
    OrderFilter,
    OrderRead,
    OrderStatus,
    OrderUpdate,
    PaymentStatus,
    UnitFilter,
    UnitRead,
    UnitStatus,
    UnitUpdate,
)

__all__ = [
    "BatchGroup",
    "BatchRead",
    "BatchStatus",
    "BatchUpdate",
    "CompanyCreate",
    "CompanyRead",
    "CompanyUpdate",
    "DashboardMetrics",
    "FormTypeCreate",
    "FormTypeRead",
    "FormTypeUpdate",
    "OrderCreate",
    "OrderFilter",
    "OrderRead",
    "OrderStatus",
    "OrderUpdate",
    "PartitionResult",
    "PaymentStatus",
    "PendingIncrement",
    "ReservedNumberRead",
    "UnitFilter",
    "UnitRead",
    "UnitStatus",
    "UnitUpdate",
]
