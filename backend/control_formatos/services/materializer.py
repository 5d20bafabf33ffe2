"""
Materialización de formatos
Proyecto: Control de Formatos (SGV)

Crea un formato por cada número del rango de un pedido.
"""

import datetime
import logging

from control_formatos.core.config import Settings
from control_formatos.core.exceptions import IntegrityViolationError
from control_formatos.schemas import OrderRead, UnitRead, UnitStatus
from control_formatos.schemas.common import new_id, utcnow
from control_formatos.storage.base import UnitOfWork

logger = logging.getLogger(__name__)


class UnitMaterializer:
    """
    Genera los formatos de un pedido en bloque.

    Se ejecuta dentro de la unidad de trabajo que crea el pedido: si
    cualquier inserción falla no queda ningún formato ni el pedido.
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    def build_units(self, order: OrderRead) -> list[UnitRead]:
        """Formatos ``starting_number .. ending_number`` del pedido, todos disponibles."""
        entry_date = order.pickup_date or datetime.date.today()
        now = utcnow()
        return [
            UnitRead(
                id=new_id(),
                number=number,
                order_id=order.id,
                status=UnitStatus.AVAILABLE,
                current_location=self.settings.default_location,
                entry_date=entry_date,
                created_at=now,
                updated_at=now,
            )
            for number in range(order.starting_number, order.ending_number + 1)
        ]

    async def materialize(self, uow: UnitOfWork, order: OrderRead) -> list[UnitRead]:
        """
        Crea los formatos del pedido.

        Args:
            uow: Unidad de trabajo de la creación del pedido
            order: Pedido con numeración ya asignada

        Returns:
            Lista de formatos creados

        Raises:
            IntegrityViolationError: Si algún número del rango ya existe en el par
        """
        clashes = await uow.units.numbers_in_range(
            order.company, order.form_type, order.starting_number, order.ending_number
        )
        if clashes:
            logger.warning(
                "Numeración duplicada para %s / %s: %s números del rango %s-%s ya existen",
                order.company, order.form_type, len(clashes), order.starting_number, order.ending_number,
            )
            raise IntegrityViolationError(
                f"Los números {clashes[0]}-{clashes[-1]} de {order.company} / {order.form_type} "
                f"ya están emitidos ({len(clashes)} en conflicto)",
                extra={"numbers": clashes},
            )

        units = self.build_units(order)
        await uow.units.add_many(units)

        # Un número reservado deja de estarlo al emitirse
        for number in await uow.reserved_numbers.list(order.company, order.form_type):
            if order.starting_number <= number <= order.ending_number:
                await uow.reserved_numbers.remove(order.company, order.form_type, number)

        logger.info(
            "Materializados %s formatos (%s-%s) para el pedido %s",
            len(units), order.starting_number, order.ending_number, order.id,
        )
        return units
