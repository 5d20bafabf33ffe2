"""
Envío de talonarios
Proyecto: Control de Formatos (SGV)

Marca como enviados, en una sola operación, los talonarios seleccionados.
"""

import datetime
import logging
from typing import Iterable, Optional

from control_formatos.core.exceptions import BusinessValidationError, ConflictError
from control_formatos.schemas import BatchStatus
from control_formatos.storage.base import Store

# Logger para este módulo
logger = logging.getLogger(__name__)


class DispatchProcessor:
    """
    Envío masivo de talonarios.

    Los talonarios seleccionados que no están disponibles se omiten;
    una selección sin ningún talonario disponible es un error.
    """

    def __init__(self, store: Store) -> None:
        self.store = store

    async def dispatch(
        self,
        batch_ids: Iterable[str],
        departure_date: Optional[datetime.date],
        destination: Optional[str],
        notes: Optional[str] = None,
    ) -> int:
        """
        Envía los talonarios seleccionados.

        Args:
            batch_ids: Ids de los talonarios
            departure_date: Fecha de salida (obligatoria)
            destination: Destino (obligatorio)
            notes: Observaciones

        Returns:
            int: Talonarios enviados

        Raises:
            BusinessValidationError: Si falta la fecha o el destino
            ConflictError: Si ningún talonario seleccionado está disponible
        """
        destination = destination.strip() if destination else ""
        errors = {}
        if departure_date is None:
            errors["departure_date"] = "La fecha de salida es requerida"
        if not destination:
            errors["destination"] = "El destino es requerido"
        if errors:
            logger.warning("Envío rechazado: %s", errors)
            raise BusinessValidationError.from_fields(errors)

        ids = list(dict.fromkeys(batch_ids))
        if not ids:
            raise ConflictError("Seleccione al menos un talonario para enviar")

        async with self.store.unit_of_work() as uow:
            batches = await uow.batches.get_many(ids)
            eligible = [b for b in batches if b.status == BatchStatus.AVAILABLE]
            skipped = [i for i in ids if i not in {b.id for b in eligible}]

            if not eligible:
                logger.warning("Envío sin talonarios disponibles: %s", ids)
                raise ConflictError(
                    "Ninguno de los talonarios seleccionados está disponible para envío",
                    extra={"skipped": skipped},
                )

            for batch in eligible:
                await uow.batches.update(
                    batch.id,
                    {
                        "status": BatchStatus.DISPATCHED,
                        "departure_date": departure_date,
                        "destination": destination,
                        "notes": notes,
                    },
                )

        if skipped:
            logger.warning("Talonarios omitidos en el envío (no disponibles o inexistentes): %s", skipped)
        logger.info(
            "Enviados %s talonarios a %s el %s",
            len(eligible), destination, departure_date.isoformat(),
        )
        return len(eligible)

    async def return_to_available(self, batch_ids: Iterable[str]) -> int:
        """
        Devuelve talonarios enviados al estado disponible.

        Borra la fecha de salida y el destino.

        Returns:
            int: Talonarios devueltos
        """
        ids = list(dict.fromkeys(batch_ids))

        async with self.store.unit_of_work() as uow:
            batches = await uow.batches.get_many(ids)
            returned = [b for b in batches if b.status == BatchStatus.DISPATCHED]
            for batch in returned:
                await uow.batches.update(
                    batch.id,
                    {"status": BatchStatus.AVAILABLE, "departure_date": None, "destination": None},
                )

        logger.info("Devueltos a disponible %s de %s talonarios", len(returned), len(ids))
        return len(returned)
