"""
Mixin SQLAlchemy para modelos
Proyecto: Control de Formatos (SGV)

Mixin reutilizables para agregar funcionalidades comunes a los modelos.
"""

import datetime
import uuid

from sqlalchemy import DateTime, String
from sqlalchemy import event
from sqlalchemy.orm import Mapped, mapped_column, Session
from sqlalchemy.sql import func


class TimestampMixin:
    """
    Mixin para los timestamps de creación y actualización.

    Agrega los campos:
    - created_at: fecha/hora de creación del registro
    - updated_at: fecha/hora de la última actualización

    Usage:
        class MyModel(Base, TimestampMixin):
            __tablename__ = "my_table"
            ...
    """

    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        doc="Fecha/hora de creación del registro",
    )

    updated_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        doc="Fecha/hora de la última actualización del registro",
    )


class StringIdMixin:
    """
    Mixin para ids opacos de texto.

    Los ids los genera normalmente la capa de servicios; el default
    cubre inserciones directas.
    """

    id: Mapped[str] = mapped_column(
        String(64),
        primary_key=True,
        default=lambda: uuid.uuid4().hex,
        doc="Id opaco del registro",
    )


# ------------------------------------------------------------
# Event Listeners
# ------------------------------------------------------------
@event.listens_for(Session, "before_flush")
def update_timestamp(session: Session, flush_context, instances) -> None:
    """
    Actualiza automáticamente updated_at de los objetos modificados.

    Args:
        session: Sesión SQLAlchemy
        flush_context: Contexto del flush
        instances: No usado
    """
    now = datetime.datetime.now(datetime.timezone.utc)

    for obj in session.dirty:
        if hasattr(obj, "updated_at") and session.is_modified(obj, include_collections=False):
            obj.updated_at = now
