"""
Configuración del logging
Proyecto: Control de Formatos (SGV)
"""

import logging

from control_formatos.core.config import Settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(settings: Settings) -> None:
    """
    Configura el logger raíz según la configuración.

    El logger de SQLAlchemy queda en WARNING salvo en modo debug.
    """
    logging.basicConfig(level=settings.log_level, format=LOG_FORMAT)
    logging.getLogger("sqlalchemy").setLevel(
        logging.INFO if settings.debug else logging.WARNING
    )
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
