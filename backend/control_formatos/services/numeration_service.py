"""
Service de numeración
Proyecto: Control de Formatos (SGV)

Asigna el siguiente número libre de un par (empresa, tipo de formato).

La numeración es independiente por par: un par sin pedidos empieza
siempre en 1, aunque otros pares ya tengan números emitidos.

El máximo se calcula directamente sobre los formatos existentes del
par. Por eso, al eliminar el último pedido de un par, sus números
vuelven a estar disponibles.
"""

import logging
from typing import Iterable

from control_formatos.core.exceptions import BusinessValidationError, IntegrityViolationError
from control_formatos.storage.base import Store, UnitOfWork

# Logger para este módulo
logger = logging.getLogger(__name__)


class NumerationAllocator:
    """
    Asignador de numeración por (empresa, tipo de formato).

    Consulta los formatos emitidos y la reserva de números devueltos.
    Si el almacenamiento no responde se propaga StorageUnavailableError:
    nunca se confunde con un par sin historial (que devolvería 1).
    """

    def __init__(self, store: Store) -> None:
        self.store = store

    async def allocate(self, uow: UnitOfWork, form_type: str, company: str, consume: bool = True) -> int:
        """
        Calcula el siguiente número dentro de una unidad de trabajo abierta.

        Lo usa la creación de pedidos para que asignación y
        materialización sean una sola operación atómica.

        Args:
            uow: Unidad de trabajo del llamador
            form_type: Nombre del tipo de formato
            company: Nombre de la empresa
            consume: Si True retira de la reserva el número devuelto

        Returns:
            int: Número >= 1
        """
        current_max = await uow.units.max_number(company, form_type) or 0
        candidate = current_max + 1

        reserved = [n for n in await uow.reserved_numbers.list(company, form_type) if n >= candidate]
        if reserved:
            number = reserved[0]
            if consume:
                await uow.reserved_numbers.remove(company, form_type, number)
                logger.info("Número reservado %s consumido para %s / %s", number, company, form_type)
            return number

        return candidate

    async def next_number(self, form_type: str, company: str, consume: bool = True) -> int:
        """
        Siguiente número libre del par.

        Args:
            form_type: Nombre del tipo de formato
            company: Nombre de la empresa
            consume: False solo consulta, sin retirar números reservados

        Returns:
            int: Número >= 1

        Raises:
            StorageUnavailableError: Si el almacenamiento no es accesible
        """
        async with self.store.unit_of_work() as uow:
            number = await self.allocate(uow, form_type, company, consume=consume)

        logger.debug("Siguiente número para %s / %s: %s", company, form_type, number)
        return number

    async def reserved_numbers(self, form_type: str, company: str) -> list[int]:
        async with self.store.unit_of_work() as uow:
            return await uow.reserved_numbers.list(company, form_type)

    async def reserve_numbers(self, form_type: str, company: str, numbers: Iterable[int]) -> list[int]:
        """
        Agrega números a la reserva del par.

        Raises:
            BusinessValidationError: Si algún número es menor que 1
            IntegrityViolationError: Si algún número ya fue emitido
        """
        wanted = sorted(set(numbers))
        if not wanted:
            return []
        if wanted[0] < 1:
            raise BusinessValidationError.from_fields({"numbers": "Los números reservados deben ser mayores a 0"})

        async with self.store.unit_of_work() as uow:
            issued = set(await uow.units.numbers_in_range(company, form_type, wanted[0], wanted[-1]))
            clashes = [n for n in wanted if n in issued]
            if clashes:
                logger.warning(
                    "Reserva rechazada para %s / %s: números ya emitidos %s",
                    company, form_type, clashes,
                )
                raise IntegrityViolationError(
                    f"Números ya emitidos para {company} / {form_type}: {clashes}"
                )

            for number in wanted:
                await uow.reserved_numbers.add(company, form_type, number)

        logger.info("Reservados %s números para %s / %s", len(wanted), company, form_type)
        return wanted
