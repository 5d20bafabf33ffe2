"""
Modelos de base de datos SQLAlchemy
Proyecto: Control de Formatos (SGV)

Import centralizado de todos los modelos para create_all y uso genérico.

Modelos:
- Company: Empresas clientes
- FormType: Tipos de formato por empresa
- Order: Pedidos de impresión
- Unit: Formatos numerados generados por cada pedido
- Batch: Talonarios guardados por (empresa, formato)
- ReservedNumber: Números reservados pero no usados por (empresa, formato)
"""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Clase base para todos los modelos SQLAlchemy."""
    pass


from control_formatos.models.company import Company, FormType
from control_formatos.models.order import Order, Unit
from control_formatos.models.batch import Batch, ReservedNumber

__all__ = [
    "Base",
    "Company",
    "FormType",
    "Order",
    "Unit",
    "Batch",
    "ReservedNumber",
]
