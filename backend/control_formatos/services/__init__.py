"""
Services
Proyecto: Control de Formatos (SGV)

Lógica de negocio. Cada service recibe el Store en el constructor y
abre sus propias unidades de trabajo.
"""

from control_formatos.services.batch_service import BatchService
from control_formatos.services.company_service import CompanyService, FormTypeService
from control_formatos.services.dashboard_service import DashboardService
from control_formatos.services.dispatch_service import DispatchProcessor
from control_formatos.services.materializer import UnitMaterializer
from control_formatos.services.migration_service import MigrationService
from control_formatos.services.numeration_service import NumerationAllocator
from control_formatos.services.order_service import OrderService
from control_formatos.services.unit_service import UnitService

__all__ = [
    "BatchService",
    "CompanyService",
    "DashboardService",
    "DispatchProcessor",
    "FormTypeService",
    "MigrationService",
    "NumerationAllocator",
    "OrderService",
    "UnitMaterializer",
    "UnitService",
]
