"""
Service para Formatos
Proyecto: Control de Formatos (SGV)

Consulta y cambio de ubicación/estado de los formatos individuales.
"""

import logging
from typing import Optional

from control_formatos.schemas import UnitFilter, UnitRead, UnitStatus, UnitUpdate
from control_formatos.storage.base import Store

# Logger para este módulo
logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("status", "current_location", "entry_date")


class UnitService:
    """Service para la gestión de los formatos."""

    def __init__(self, store: Store) -> None:
        self.store = store

    async def list_units(self, filters: Optional[UnitFilter] = None) -> list[UnitRead]:
        """
        Lista los formatos ordenados por empresa, formato y número.

        Args:
            filters: Pedido, estado, par (empresa, formato) y rango de números
        """
        async with self.store.unit_of_work() as uow:
            return await uow.units.filter(filters or UnitFilter())

    async def get_unit(self, unit_id: str) -> Optional[UnitRead]:
        async with self.store.unit_of_work() as uow:
            return await uow.units.get(unit_id)

    async def update_unit(self, unit_id: str, data: UnitUpdate) -> Optional[UnitRead]:
        """
        Actualiza ubicación, estado y datos de entrega de un formato.

        Returns:
            El formato actualizado, None si no existe
        """
        update_data = data.model_dump(exclude_unset=True)
        # Campos obligatorios: None no los borra
        for name in REQUIRED_FIELDS:
            if name in update_data and update_data[name] is None:
                del update_data[name]

        async with self.store.unit_of_work() as uow:
            unit = await uow.units.update(unit_id, update_data)

        if unit is None:
            logger.warning("Formato no encontrado: %s", unit_id)
            return None

        logger.info("Formato %s (nº %s) actualizado: campos %s", unit_id, unit.number, sorted(update_data))
        return unit

    async def count_by_state(self) -> dict[UnitStatus, int]:
        """Cantidad de formatos por estado (todos los estados presentes)."""
        async with self.store.unit_of_work() as uow:
            counts = await uow.units.count_by_status()
        return {status: counts.get(status.value, 0) for status in UnitStatus}
