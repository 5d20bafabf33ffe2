"""
Utilidades comunes a los schemas
Proyecto: Control de Formatos (SGV)
"""

import datetime
import uuid


def new_id() -> str:
    """Genera un id opaco para un nuevo registro."""
    return uuid.uuid4().hex


def utcnow() -> datetime.datetime:
    """Fecha/hora actual en UTC."""
    return datetime.datetime.now(datetime.timezone.utc)
