"""
Main Entry Point - Ciclo de vida de la aplicación
Proyecto: Control de Formatos (SGV)

Construye el store configurado, los services que lo usan y los
libera al cerrar. La interfaz (escritorio) solo recibe el
``Application`` y llama a sus services.
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Optional

from control_formatos.core.config import Settings, get_settings
from control_formatos.core.logging import configure_logging
from control_formatos.services import (
    BatchService,
    CompanyService,
    DashboardService,
    DispatchProcessor,
    FormTypeService,
    MigrationService,
    NumerationAllocator,
    OrderService,
    UnitMaterializer,
    UnitService,
)
from control_formatos.storage import Store, create_store

logger = logging.getLogger(__name__)


@dataclass
class Application:
    """Services de la aplicación sobre un único store."""

    settings: Settings
    store: Store
    companies: CompanyService
    form_types: FormTypeService
    numeration: NumerationAllocator
    orders: OrderService
    units: UnitService
    batches: BatchService
    dispatch: DispatchProcessor
    dashboard: DashboardService
    migration: MigrationService


def build_application(settings: Settings, store: Store) -> Application:
    """Conecta los services a un store ya construido."""
    numeration = NumerationAllocator(store)
    return Application(
        settings=settings,
        store=store,
        companies=CompanyService(store),
        form_types=FormTypeService(store),
        numeration=numeration,
        orders=OrderService(store, settings, allocator=numeration, materializer=UnitMaterializer(settings)),
        units=UnitService(store),
        batches=BatchService(store, settings),
        dispatch=DispatchProcessor(store),
        dashboard=DashboardService(store),
        migration=MigrationService(),
    )


@asynccontextmanager
async def lifespan(settings: Optional[Settings] = None) -> AsyncIterator[Application]:
    """
    Gestiona el ciclo de vida de la aplicación.

    - Inicio: configura el logging y abre el almacenamiento
    - Cierre: cierra el almacenamiento

    Args:
        settings: Configuración (default: ``get_settings()``)
    """
    settings = settings or get_settings()
    configure_logging(settings)

    # Inicio
    logger.info("Inicio de %s v%s (%s)", settings.app_name, settings.app_version, settings.app_env)
    store = create_store(settings)
    await store.open()
    logger.info("Aplicación iniciada correctamente")

    try:
        yield build_application(settings, store)
    finally:
        # Cierre
        logger.info("Cierre de la aplicación...")
        await store.close()
        logger.info("Aplicación cerrada")
