"""
Almacenamiento de la aplicación
Proyecto: Control de Formatos (SGV)

El motor se elige una sola vez al arrancar; la lógica de negocio solo
conoce la interfaz de ``storage.base``.
"""

import logging

from control_formatos.core.config import Settings
from control_formatos.storage.base import Store, UnitOfWork
from control_formatos.storage.memory import JsonStore
from control_formatos.storage.sql import SqlStore

logger = logging.getLogger(__name__)


def create_store(settings: Settings) -> Store:
    """
    Construye el store configurado (todavía sin abrir).

    Args:
        settings: Configuración de la aplicación

    Returns:
        Store: SqlStore para ``sqlite``, JsonStore para ``json``
    """
    if settings.storage_backend == "json":
        logger.info("Motor de almacenamiento: archivos JSON (%s)", settings.data_dir or "solo memoria")
        return JsonStore(settings.data_dir)

    logger.info("Motor de almacenamiento: SQLite")
    return SqlStore(settings)


__all__ = ["JsonStore", "SqlStore", "Store", "UnitOfWork", "create_store"]
