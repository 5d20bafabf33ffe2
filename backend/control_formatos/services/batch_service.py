"""
Service para Talonarios
Proyecto: Control de Formatos (SGV)

Agrupa los formatos disponibles de un par (empresa, tipo de formato)
en talonarios de tamaño fijo para su almacenamiento y envío.

Reglas:
- Los talonarios enviados nunca se recalculan: su rango es fijo.
- Solo la cola disponible se vuelve a dividir.
- Los números emitidos después del último guardado se informan como
  incremento pendiente, para que se elija su tamaño de talonario.
"""

import bisect
import datetime
import logging
import re
from typing import Iterable, Mapping, Optional, Sequence

from control_formatos.core.config import Settings
from control_formatos.core.exceptions import (
    BusinessValidationError,
    IntegrityViolationError,
    NotFoundError,
)
from control_formatos.schemas import (
    BatchGroup,
    BatchRead,
    BatchStatus,
    BatchUpdate,
    PartitionResult,
    PendingIncrement,
    UnitFilter,
    UnitRead,
    UnitStatus,
)
from control_formatos.schemas.common import new_id, utcnow
from control_formatos.storage.base import Store, UnitOfWork

# Logger para este módulo
logger = logging.getLogger(__name__)

MONTH_PATTERN = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")

Range = tuple[int, int]


def tile(number_from: int, number_to: int, size: int) -> list[Range]:
    """
    Divide ``[number_from, number_to]`` en rangos consecutivos de ``size``.

    El último rango puede ser más corto.

    >>> tile(1, 80, 50)
    [(1, 50), (51, 80)]
    """
    if size <= 0:
        raise BusinessValidationError.from_fields({"batch_size": "El tamaño de talonario debe ser mayor a 0"})
    return [
        (start, min(start + size - 1, number_to))
        for start in range(number_from, number_to + 1, size)
    ]


def subtract(number_from: int, number_to: int, taken: Iterable[Range]) -> list[Range]:
    """Tramos de ``[number_from, number_to]`` no cubiertos por ``taken``."""
    free: list[Range] = []
    cursor = number_from
    for start, end in sorted(taken):
        if end < cursor or start > number_to:
            continue
        if start > cursor:
            free.append((cursor, start - 1))
        cursor = max(cursor, end + 1)
    if cursor <= number_to:
        free.append((cursor, number_to))
    return free


def check_batch_set(batches: Sequence[BatchRead]) -> None:
    """
    Verifica que los rangos de un conjunto de talonarios no se superpongan.

    Raises:
        IntegrityViolationError: Si dos talonarios comparten números
    """
    ordered = sorted(batches, key=lambda b: b.number_from)
    for previous, current in zip(ordered, ordered[1:]):
        if current.number_from <= previous.number_to:
            raise IntegrityViolationError(
                f"Talonarios superpuestos: {previous.number_from}-{previous.number_to} "
                f"y {current.number_from}-{current.number_to}"
            )


class BatchPartitioner:
    """
    División de la numeración en talonarios.

    No accede al almacenamiento: recibe formatos y talonarios guardados
    y devuelve la propuesta ordenada por inicio de rango.
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    def _entry_date(self, dates: Mapping[int, datetime.date], keys: Sequence[int], rng: Range) -> datetime.date:
        # Fecha del primer formato del rango; hoy si el rango no tiene formatos
        index = bisect.bisect_left(keys, rng[0])
        if index < len(keys) and keys[index] <= rng[1]:
            return dates[keys[index]]
        return datetime.date.today()

    def _build(
        self,
        company: str,
        form_type: str,
        ranges: Iterable[Range],
        reusable: Mapping[Range, BatchRead],
        dates: Mapping[int, datetime.date],
    ) -> list[BatchRead]:
        keys = sorted(dates)
        now = utcnow()
        batches = []
        for rng in ranges:
            if rng in reusable:
                batches.append(reusable[rng])
                continue
            batches.append(
                BatchRead(
                    id=new_id(),
                    company=company,
                    form_type=form_type,
                    number_from=rng[0],
                    number_to=rng[1],
                    quantity=rng[1] - rng[0] + 1,
                    entry_date=self._entry_date(dates, keys, rng),
                    storage_location=self.settings.default_location,
                    status=BatchStatus.AVAILABLE,
                    created_at=now,
                    updated_at=now,
                )
            )
        return batches

    def partition(
        self,
        company: str,
        form_type: str,
        units: Sequence[UnitRead],
        saved: Sequence[BatchRead],
        batch_size: Optional[int] = None,
        new_batch_size: Optional[int] = None,
        entry_dates: Optional[Mapping[int, datetime.date]] = None,
    ) -> PartitionResult:
        """
        Calcula los talonarios de un par.

        Args:
            company: Nombre de la empresa
            form_type: Nombre del tipo de formato
            units: Formatos disponibles del par
            saved: Talonarios guardados del par
            batch_size: Tamaño para volver a dividir la cola disponible.
                None conserva los talonarios disponibles guardados tal cual.
            new_batch_size: Tamaño solo para los números nuevos
                (default: ``batch_size`` o el tamaño por defecto)
            entry_dates: Fecha de ingreso por número (default: la del formato)

        Returns:
            PartitionResult: Talonarios (enviados intactos + disponibles)
            y el incremento pendiente, si lo hay
        """
        dispatched = [b for b in saved if b.status == BatchStatus.DISPATCHED]
        available_saved = [b for b in saved if b.status == BatchStatus.AVAILABLE]

        if not units:
            return PartitionResult(batches=sorted(dispatched, key=lambda b: b.number_from))

        numbers = [u.number for u in units]
        high = max(numbers)
        saved_max = max((b.number_to for b in saved), default=None)

        if available_saved:
            low = min(b.number_from for b in available_saved)
        elif saved_max is not None:
            low = saved_max + 1
        else:
            low = min(numbers)

        dates = entry_dates if entry_dates is not None else {u.number: u.entry_date for u in units}
        taken = [b.number_range for b in dispatched]
        increment_from = saved_max + 1 if saved_max is not None else low
        increment_size = new_batch_size or batch_size or self.settings.default_batch_size

        ranges: list[Range] = []
        if batch_size is None:
            # Cola guardada intacta, recortada a los formatos existentes
            reusable = {}
            for batch in available_saved:
                if batch.number_from > high:
                    continue
                if batch.number_to > high:
                    batch = batch.model_copy(update={"number_to": high, "quantity": high - batch.number_from + 1})
                reusable[batch.number_range] = batch
                ranges.append(batch.number_range)
            segments = [(increment_from, high, increment_size)]
        else:
            reusable = {b.number_range: b for b in available_saved}
            if new_batch_size is None or new_batch_size == batch_size:
                segments = [(low, high, batch_size)]
            else:
                segments = [
                    (low, min(increment_from - 1, high), batch_size),
                    (max(increment_from, low), high, new_batch_size),
                ]

        for start, end, size in segments:
            for free_from, free_to in subtract(start, end, taken):
                ranges.extend(tile(free_from, free_to, size))

        available = self._build(company, form_type, ranges, reusable, dates)
        batches = sorted(dispatched + available, key=lambda b: b.number_from)

        pending_new = None
        if high >= increment_from:
            pending_new = PendingIncrement(
                count=high - increment_from + 1,
                number_from=increment_from,
                number_to=high,
            )

        return PartitionResult(batches=batches, pending_new=pending_new)

    def resize(self, batches: Sequence[BatchRead], batch_ids: Iterable[str], new_size: int) -> list[BatchRead]:
        """
        Vuelve a dividir los talonarios seleccionados con otro tamaño.

        La selección debe ser contigua y estar disponible. Los talonarios
        no seleccionados no cambian.

        Raises:
            BusinessValidationError: Selección vacía o con talonarios enviados
            IntegrityViolationError: Selección no contigua
        """
        wanted = set(batch_ids)
        selected = sorted((b for b in batches if b.id in wanted), key=lambda b: b.number_from)
        if not selected:
            raise BusinessValidationError.from_fields({"batch_ids": "Seleccione al menos un talonario"})

        sent = [b for b in selected if b.status == BatchStatus.DISPATCHED]
        if sent:
            raise BusinessValidationError.from_fields({
                "batch_ids": f"No se puede redimensionar un talonario enviado ({sent[0].number_from}-{sent[0].number_to})"
            })

        for previous, current in zip(selected, selected[1:]):
            if current.number_from != previous.number_to + 1:
                raise IntegrityViolationError(
                    f"Selección no contigua: {previous.number_to} y {current.number_from}"
                )

        first = selected[0]
        now = utcnow()
        resized = [
            first.model_copy(update={
                "id": new_id(),
                "number_from": start,
                "number_to": end,
                "quantity": end - start + 1,
                "notes": f"Redimensionado: {new_size} hojas por talonario",
                "created_at": now,
                "updated_at": now,
            })
            for start, end in tile(first.number_from, selected[-1].number_to, new_size)
        ]

        others = [b for b in batches if b.id not in wanted]
        return sorted(others + resized, key=lambda b: b.number_from)


class BatchService:
    """
    Service para la gestión de los talonarios.

    Los talonarios guardados son una vista sobre los formatos del par;
    se concilian con los formatos disponibles en cada ``prepare``.
    """

    def __init__(self, store: Store, settings: Settings, partitioner: Optional[BatchPartitioner] = None) -> None:
        self.store = store
        self.settings = settings
        self.partitioner = partitioner or BatchPartitioner(settings)

    @staticmethod
    def _check_size(name: str, size: Optional[int]) -> None:
        if size is not None and size <= 0:
            raise BusinessValidationError.from_fields({name: "El tamaño de talonario debe ser mayor a 0"})

    async def list_batch_groups(self, company: str) -> list[BatchGroup]:
        """
        Resumen de formatos disponibles de una empresa, por tipo de formato.

        Args:
            company: Nombre de la empresa

        Returns:
            Un grupo por formato con rango, cantidad y último recojo
        """
        async with self.store.unit_of_work() as uow:
            orders = {o.id: o for o in await uow.orders.list(company=company)}
            units = await uow.units.filter(UnitFilter(company=company, status=UnitStatus.AVAILABLE))

        groups: dict[str, list[UnitRead]] = {}
        for unit in units:
            groups.setdefault(orders[unit.order_id].form_type, []).append(unit)

        result = []
        for form_type, members in sorted(groups.items()):
            pickups = [
                orders[order_id].pickup_date
                for order_id in {u.order_id for u in members}
                if orders[order_id].pickup_date is not None
            ]
            result.append(
                BatchGroup(
                    company=company,
                    form_type=form_type,
                    unit_count=len(members),
                    number_min=min(u.number for u in members),
                    number_max=max(u.number for u in members),
                    latest_pickup_date=max(pickups, default=None),
                )
            )
        return result

    async def _entry_dates(self, uow: UnitOfWork, company: str, form_type: str, units: Sequence[UnitRead]) -> dict[int, datetime.date]:
        # Fecha de recojo del pedido; si no la tiene, ingreso del formato
        pickups = {o.id: o.pickup_date for o in await uow.orders.list(company=company, form_type=form_type)}
        return {u.number: pickups.get(u.order_id) or u.entry_date for u in units}

    async def prepare(
        self,
        company: str,
        form_type: str,
        batch_size: Optional[int] = None,
        new_batch_size: Optional[int] = None,
    ) -> PartitionResult:
        """
        Propone los talonarios del par a partir de lo guardado.

        No guarda nada: el resultado se confirma con ``save_batches``.

        Args:
            company: Nombre de la empresa
            form_type: Nombre del tipo de formato
            batch_size: Nuevo tamaño para la cola disponible (None = conservarla)
            new_batch_size: Tamaño solo para los números nuevos
        """
        self._check_size("batch_size", batch_size)
        self._check_size("new_batch_size", new_batch_size)

        async with self.store.unit_of_work() as uow:
            saved = await uow.batches.load(company, form_type)
            units = await uow.units.list_for_pair(company, form_type, status=UnitStatus.AVAILABLE)
            dates = await self._entry_dates(uow, company, form_type, units)

        result = self.partitioner.partition(
            company,
            form_type,
            units,
            saved,
            batch_size=batch_size,
            new_batch_size=new_batch_size,
            entry_dates=dates,
        )

        if result.pending_new is not None:
            logger.info(
                "%s / %s: %s formatos nuevos (%s-%s) pendientes de agrupar",
                company, form_type, result.pending_new.count,
                result.pending_new.number_from, result.pending_new.number_to,
            )
        return result

    async def load_batches(self, company: str, form_type: str) -> list[BatchRead]:
        async with self.store.unit_of_work() as uow:
            return await uow.batches.load(company, form_type)

    async def _save(self, uow: UnitOfWork, company: str, form_type: str, batches: Sequence[BatchRead]) -> list[BatchRead]:
        foreign = [b for b in batches if b.company != company or b.form_type != form_type]
        if foreign:
            raise BusinessValidationError.from_fields({
                "batches": f"El talonario {foreign[0].number_from}-{foreign[0].number_to} no pertenece a {company} / {form_type}"
            })
        check_batch_set(batches)

        ranges = {b.number_range for b in batches}
        for batch in await uow.batches.load(company, form_type):
            if batch.status == BatchStatus.DISPATCHED and batch.number_range not in ranges:
                logger.warning(
                    "Guardado rechazado para %s / %s: el talonario enviado %s-%s cambió de rango",
                    company, form_type, batch.number_from, batch.number_to,
                )
                raise IntegrityViolationError(
                    f"El talonario enviado {batch.number_from}-{batch.number_to} no puede modificarse"
                )

        ordered = sorted(batches, key=lambda b: b.number_from)
        await uow.batches.replace(company, form_type, ordered)
        return ordered

    async def save_batches(self, company: str, form_type: str, batches: Sequence[BatchRead]) -> list[BatchRead]:
        """
        Guarda el conjunto de talonarios del par, reemplazando el anterior.

        Raises:
            BusinessValidationError: Si un talonario es de otro par
            IntegrityViolationError: Rangos superpuestos o un enviado modificado
        """
        async with self.store.unit_of_work() as uow:
            saved = await self._save(uow, company, form_type, batches)

        logger.info("Guardados %s talonarios para %s / %s", len(saved), company, form_type)
        return saved

    async def resize(self, company: str, form_type: str, batch_ids: Sequence[str], new_size: int) -> list[BatchRead]:
        """
        Cambia el tamaño de los talonarios seleccionados y guarda el conjunto.

        Raises:
            NotFoundError: Si algún id no pertenece a los talonarios del par
            BusinessValidationError: Tamaño inválido o selección con enviados
            IntegrityViolationError: Selección no contigua
        """
        self._check_size("new_size", new_size)

        async with self.store.unit_of_work() as uow:
            saved = await uow.batches.load(company, form_type)
            known = {b.id for b in saved}
            missing = [i for i in batch_ids if i not in known]
            if missing:
                raise NotFoundError(f"Talonarios no encontrados para {company} / {form_type}: {missing}")

            result = await self._save(uow, company, form_type, self.partitioner.resize(saved, batch_ids, new_size))

        logger.info(
            "Redimensionados %s talonarios de %s / %s a %s hojas",
            len(batch_ids), company, form_type, new_size,
        )
        return result

    async def update_batch(self, batch_id: str, data: BatchUpdate) -> Optional[BatchRead]:
        """
        Edita un talonario guardado.

        Asignar la fecha de salida lo marca como enviado; borrarla lo
        devuelve a disponible y borra el destino.

        Returns:
            El talonario actualizado, None si no existe
        """
        update_data = data.model_dump(exclude_unset=True)
        for name in ("storage_location", "entry_date"):
            if name in update_data and update_data[name] is None:
                del update_data[name]
        if "departure_date" in update_data:
            if update_data["departure_date"]:
                update_data["status"] = BatchStatus.DISPATCHED
            else:
                # Igual que return_to_available: sin salida no hay destino
                update_data["status"] = BatchStatus.AVAILABLE
                update_data["destination"] = None

        async with self.store.unit_of_work() as uow:
            batch = await uow.batches.update(batch_id, update_data)

        if batch is None:
            logger.warning("Talonario no encontrado: %s", batch_id)
            return None

        logger.info(
            "Talonario %s-%s actualizado (%s): campos %s",
            batch.number_from, batch.number_to, batch.status.value, sorted(update_data),
        )
        return batch

    async def select_first_available(self, company: str, form_type: str, count: int) -> list[str]:
        """
        Ids de los primeros ``count`` talonarios disponibles del par.

        Raises:
            BusinessValidationError: Si ``count`` no es positivo o supera los disponibles
        """
        batches = await self.filter_batches(company, form_type, status=BatchStatus.AVAILABLE)
        if count <= 0 or count > len(batches):
            raise BusinessValidationError.from_fields({
                "count": f"Indique entre 1 y {len(batches)} talonarios disponibles"
            })
        return [b.id for b in batches[:count]]

    async def filter_batches(
        self,
        company: str,
        form_type: str,
        month: Optional[str] = None,
        status: Optional[BatchStatus] = None,
    ) -> list[BatchRead]:
        """
        Talonarios guardados filtrados por mes de salida y estado.

        Args:
            month: ``YYYY-MM`` de la fecha de salida
            status: Estado del talonario
        """
        if month is not None and not MONTH_PATTERN.match(month):
            raise BusinessValidationError.from_fields({"month": "El mes debe tener el formato AAAA-MM"})

        batches = await self.load_batches(company, form_type)
        if status is not None:
            batches = [b for b in batches if b.status == status]
        if month is not None:
            batches = [
                b for b in batches
                if b.departure_date is not None and b.departure_date.isoformat().startswith(month)
            ]
        return batches

    async def reset_batches(self, company: Optional[str] = None, form_type: Optional[str] = None) -> int:
        """
        Elimina los talonarios guardados (todos, de una empresa o de un par).

        Returns:
            int: Talonarios eliminados
        """
        async with self.store.unit_of_work() as uow:
            removed = await uow.batches.delete_sets(company, form_type)

        logger.info(
            "Talonarios reiniciados (%s / %s): %s eliminados",
            company or "todas", form_type or "todos", removed,
        )
        return removed
