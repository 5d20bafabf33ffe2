"""
Store en memoria con persistencia en archivos JSON
Proyecto: Control de Formatos (SGV)

Alternativa al motor SQLite para equipos sin base de datos embebida.
El estado completo vive en memoria; cada unidad de trabajo trabaja
sobre una copia de las colecciones que sustituye al estado solo si el
bloque termina sin errores. Con ``data_dir`` las colecciones modificadas
se escriben a disco (archivo temporal + rename atómico).

Los registros son modelos pydantic que nunca se modifican en sitio:
``update`` construye un registro nuevo, por eso basta copiar los
contenedores y no los registros.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from collections import Counter
from contextlib import asynccontextmanager
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, AsyncIterator, Iterable, Optional, Sequence

from pydantic import BaseModel

from control_formatos.core.exceptions import IntegrityViolationError, StorageUnavailableError
from control_formatos.schemas import (
    BatchRead,
    CompanyRead,
    FormTypeRead,
    OrderFilter,
    OrderRead,
    ReservedNumberRead,
    UnitFilter,
    UnitRead,
    UnitStatus,
)
from control_formatos.schemas.common import utcnow
from control_formatos.storage.base import (
    BatchRepository,
    CompanyRepository,
    FormTypeRepository,
    OrderRepository,
    RecordT,
    Repository,
    ReservedNumberRepository,
    Store,
    UnitOfWork,
    UnitRepository,
    plain_value,
)

logger = logging.getLogger(__name__)

PAIR_SEPARATOR = " | "


def _dump_record(record: BaseModel) -> dict[str, Any]:
    return record.model_dump(mode="json", exclude=set(type(record).model_computed_fields))


def _pair_key(company: str, form_type: str) -> str:
    return f"{company}{PAIR_SEPARATOR}{form_type}"


@dataclass
class MemoryState:
    """Colecciones del store: registros por id y números reservados."""

    companies: dict[str, CompanyRead] = field(default_factory=dict)
    form_types: dict[str, FormTypeRead] = field(default_factory=dict)
    orders: dict[str, OrderRead] = field(default_factory=dict)
    units: dict[str, UnitRead] = field(default_factory=dict)
    batches: dict[str, BatchRead] = field(default_factory=dict)
    reserved_numbers: set[tuple[str, str, int]] = field(default_factory=set)

    def copy(self) -> MemoryState:
        return MemoryState(**{f.name: getattr(self, f.name).copy() for f in fields(self)})


# ------------------------------------------------------------
# Repositorios
# ------------------------------------------------------------

class MemoryRepository(Repository[RecordT]):
    """Implementación genérica sobre una colección ``{id: registro}``."""

    collection: str
    schema: type

    def __init__(self, uow: MemoryUnitOfWork) -> None:
        self._uow = uow

    @property
    def _rows(self) -> dict[str, RecordT]:
        return getattr(self._uow.state, self.collection)

    def _touch(self) -> None:
        self._uow.dirty.add(self.collection)

    def _sorted(self, records: Iterable[RecordT]) -> list[RecordT]:
        return list(records)

    async def get(self, record_id: str) -> Optional[RecordT]:
        return self._rows.get(record_id)

    async def list(self, **criteria: Any) -> list[RecordT]:
        wanted = {key: plain_value(value) for key, value in criteria.items()}
        return self._sorted(
            record
            for record in self._rows.values()
            if all(plain_value(getattr(record, key)) == value for key, value in wanted.items())
        )

    async def add(self, record: RecordT) -> RecordT:
        if record.id in self._rows:
            raise IntegrityViolationError(f"Id duplicado en {self.collection}: {record.id}")
        self._rows[record.id] = record
        self._touch()
        return record

    async def add_many(self, records: Sequence[RecordT]) -> None:
        for record in records:
            await self.add(record)

    async def update(self, record_id: str, fields: dict[str, Any]) -> Optional[RecordT]:
        current = self._rows.get(record_id)
        if current is None:
            return None

        data = current.model_dump(exclude=set(type(current).model_computed_fields))
        data.update(fields)
        data["updated_at"] = utcnow()

        updated = self.schema.model_validate(data)
        self._rows[record_id] = updated
        self._touch()
        return updated

    async def delete(self, record_id: str) -> bool:
        if self._rows.pop(record_id, None) is None:
            return False
        self._touch()
        return True


class MemoryCompanyRepository(MemoryRepository[CompanyRead], CompanyRepository):
    collection = "companies"
    schema = CompanyRead

    def _sorted(self, records):
        return sorted(records, key=lambda c: c.name.casefold())

    async def find_by_name(self, name: str) -> Optional[CompanyRead]:
        wanted = name.strip().casefold()
        return next((c for c in self._rows.values() if c.name.casefold() == wanted), None)


class MemoryFormTypeRepository(MemoryRepository[FormTypeRead], FormTypeRepository):
    collection = "form_types"
    schema = FormTypeRead

    def _sorted(self, records):
        return sorted(records, key=lambda f: f.name.casefold())

    async def find_by_name(self, company_id: str, name: str) -> Optional[FormTypeRead]:
        wanted = name.strip().casefold()
        return next(
            (f for f in self._rows.values() if f.company_id == company_id and f.name.casefold() == wanted),
            None,
        )


class MemoryOrderRepository(MemoryRepository[OrderRead], OrderRepository):
    collection = "orders"
    schema = OrderRead

    def _sorted(self, records):
        return sorted(records, key=lambda o: (o.order_date, o.created_at), reverse=True)

    async def filter(self, filters: OrderFilter) -> list[OrderRead]:
        company = filters.company.casefold() if filters.company else None

        def matches(order: OrderRead) -> bool:
            if company and company not in order.company.casefold():
                return False
            if filters.form_type and order.form_type != filters.form_type:
                return False
            if filters.status is not None and order.status != filters.status:
                return False
            if filters.payment_status is not None and order.payment_status != filters.payment_status:
                return False
            if filters.date_from is not None and order.order_date < filters.date_from:
                return False
            if filters.date_to is not None and order.order_date > filters.date_to:
                return False
            return True

        return self._sorted(o for o in self._rows.values() if matches(o))

    async def search(self, text: str) -> list[OrderRead]:
        wanted = text.casefold()
        return self._sorted(
            o
            for o in self._rows.values()
            if wanted in o.company.casefold()
            or wanted in o.form_type.casefold()
            or wanted in o.status.value
        )


class MemoryUnitRepository(MemoryRepository[UnitRead], UnitRepository):
    collection = "units"
    schema = UnitRead

    def _sorted(self, records):
        return sorted(records, key=lambda u: u.number)

    def _order_ids(self, company: str, form_type: str) -> set[str]:
        return {
            order.id
            for order in self._uow.state.orders.values()
            if order.company == company and order.form_type == form_type
        }

    def _pair_units(self, company: str, form_type: str) -> list[UnitRead]:
        order_ids = self._order_ids(company, form_type)
        return [u for u in self._rows.values() if u.order_id in order_ids]

    async def max_number(self, company: str, form_type: str) -> Optional[int]:
        return max((u.number for u in self._pair_units(company, form_type)), default=None)

    async def numbers_in_range(
        self, company: str, form_type: str, number_from: int, number_to: int
    ) -> list[int]:
        return sorted(
            u.number
            for u in self._pair_units(company, form_type)
            if number_from <= u.number <= number_to
        )

    async def list_for_pair(
        self, company: str, form_type: str, status: Optional[UnitStatus] = None
    ) -> list[UnitRead]:
        units = self._pair_units(company, form_type)
        if status is not None:
            units = [u for u in units if u.status == status]
        return self._sorted(units)

    async def filter(self, filters: UnitFilter) -> list[UnitRead]:
        orders = self._uow.state.orders

        def matches(unit: UnitRead) -> bool:
            order = orders.get(unit.order_id)
            if order is None:
                return False
            if filters.order_id and unit.order_id != filters.order_id:
                return False
            if filters.status is not None and unit.status != filters.status:
                return False
            if filters.company and order.company != filters.company:
                return False
            if filters.form_type and order.form_type != filters.form_type:
                return False
            if filters.number_from is not None and unit.number < filters.number_from:
                return False
            if filters.number_to is not None and unit.number > filters.number_to:
                return False
            return True

        def sort_key(unit: UnitRead):
            order = orders[unit.order_id]
            return order.company, order.form_type, unit.number

        return sorted((u for u in self._rows.values() if matches(u)), key=sort_key)

    async def delete_by_order(self, order_id: str) -> int:
        doomed = [u.id for u in self._rows.values() if u.order_id == order_id]
        for unit_id in doomed:
            del self._rows[unit_id]
        if doomed:
            self._touch()
        return len(doomed)

    async def count_by_status(self) -> dict[str, int]:
        return dict(Counter(u.status.value for u in self._rows.values()))


class MemoryBatchRepository(MemoryRepository[BatchRead], BatchRepository):
    collection = "batches"
    schema = BatchRead

    def _sorted(self, records):
        return sorted(records, key=lambda b: (b.company, b.form_type, b.number_from))

    async def load(self, company: str, form_type: str) -> list[BatchRead]:
        return await self.list(company=company, form_type=form_type)

    async def replace(self, company: str, form_type: str, batches: Sequence[BatchRead]) -> None:
        await self.delete_sets(company, form_type)
        await self.add_many(batches)
        self._touch()

    async def get_many(self, batch_ids: Sequence[str]) -> list[BatchRead]:
        found = [self._rows[i] for i in dict.fromkeys(batch_ids) if i in self._rows]
        return sorted(found, key=lambda b: b.number_from)

    async def delete_sets(self, company: Optional[str] = None, form_type: Optional[str] = None) -> int:
        doomed = [
            b.id
            for b in self._rows.values()
            if (company is None or b.company == company)
            and (form_type is None or b.form_type == form_type)
        ]
        for batch_id in doomed:
            del self._rows[batch_id]
        if doomed:
            self._touch()
        return len(doomed)


class MemoryReservedNumberRepository(ReservedNumberRepository):

    def __init__(self, uow: MemoryUnitOfWork) -> None:
        self._uow = uow

    @property
    def _pool(self) -> set[tuple[str, str, int]]:
        return self._uow.state.reserved_numbers

    async def list(self, company: str, form_type: str) -> list[int]:
        return sorted(n for c, f, n in self._pool if c == company and f == form_type)

    async def all(self) -> list[ReservedNumberRead]:
        return [
            ReservedNumberRead(company=c, form_type=f, number=n)
            for c, f, n in sorted(self._pool)
        ]

    async def add(self, company: str, form_type: str, number: int) -> None:
        self._pool.add((company, form_type, number))
        self._uow.dirty.add("reserved_numbers")

    async def remove(self, company: str, form_type: str, number: int) -> bool:
        key = (company, form_type, number)
        if key not in self._pool:
            return False
        self._pool.remove(key)
        self._uow.dirty.add("reserved_numbers")
        return True


class MemoryUnitOfWork(UnitOfWork):

    def __init__(self, state: MemoryState) -> None:
        self.state = state
        self.dirty: set[str] = set()
        self.companies = MemoryCompanyRepository(self)
        self.form_types = MemoryFormTypeRepository(self)
        self.orders = MemoryOrderRepository(self)
        self.units = MemoryUnitRepository(self)
        self.batches = MemoryBatchRepository(self)
        self.reserved_numbers = MemoryReservedNumberRepository(self)


# ------------------------------------------------------------
# Store
# ------------------------------------------------------------

class JsonStore(Store):
    """
    Store en memoria, persistido en un archivo JSON por colección.

    Sin ``data_dir`` no toca el disco (útil en tests).
    """

    backend = "json"

    RECORD_COLLECTIONS = {
        "companies": CompanyRead,
        "form_types": FormTypeRead,
        "orders": OrderRead,
        "units": UnitRead,
    }

    def __init__(self, data_dir: Optional[str | os.PathLike] = None) -> None:
        super().__init__()
        self.data_dir = Path(data_dir) if data_dir else None
        self._state: Optional[MemoryState] = None

    async def open(self) -> None:
        if self._state is not None:
            return
        if self.data_dir is None:
            self._state = MemoryState()
            logger.info("Store en memoria inicializado (sin persistencia)")
            return

        try:
            self._state = await asyncio.to_thread(self._load)
        except (OSError, ValueError) as exc:
            # json.JSONDecodeError y pydantic.ValidationError son ValueError
            logger.error("No se pudieron leer los datos de %s: %s", self.data_dir, exc)
            raise StorageUnavailableError(f"Datos no accesibles en {self.data_dir}: {exc}") from exc
        logger.info("Store JSON abierto en %s", self.data_dir)

    async def close(self) -> None:
        self._state = None
        logger.info("Store JSON cerrado")

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[UnitOfWork]:
        if self._state is None:
            raise StorageUnavailableError("El almacenamiento no está abierto")

        uow = MemoryUnitOfWork(self._state.copy())
        yield uow

        if uow.dirty and self.data_dir is not None:
            try:
                await asyncio.to_thread(self._dump, uow.state, sorted(uow.dirty))
            except (OSError, TypeError, ValueError) as exc:
                logger.error("Error al escribir los datos en %s: %s", self.data_dir, exc)
                raise StorageUnavailableError(f"No se pudo guardar en {self.data_dir}: {exc}") from exc
        self._state = uow.state

    # ------------------------------------------------------------
    # Lectura / escritura de archivos
    # ------------------------------------------------------------

    def _path(self, collection: str) -> Path:
        return self.data_dir / f"{collection}.json"

    def _read(self, collection: str, default: Any) -> Any:
        path = self._path(collection)
        if not path.exists():
            return default
        return json.loads(path.read_text(encoding="utf-8"))

    def _load(self) -> MemoryState:
        self.data_dir.mkdir(parents=True, exist_ok=True)
        state = MemoryState()

        for collection, schema in self.RECORD_COLLECTIONS.items():
            rows = getattr(state, collection)
            for record_id, data in self._read(collection, {}).items():
                rows[record_id] = schema.model_validate(data)

        for group in self._read("batches", {}).values():
            for data in group:
                batch = BatchRead.model_validate(data)
                state.batches[batch.id] = batch

        for entry in self._read("reserved_numbers", {}).values():
            for number in entry["numbers"]:
                state.reserved_numbers.add((entry["company"], entry["form_type"], int(number)))

        return state

    def _serialize(self, state: MemoryState, collection: str) -> Any:
        if collection in self.RECORD_COLLECTIONS:
            return {rid: _dump_record(r) for rid, r in getattr(state, collection).items()}

        if collection == "batches":
            groups: dict[str, list] = {}
            for batch in sorted(state.batches.values(), key=lambda b: b.number_from):
                groups.setdefault(_pair_key(batch.company, batch.form_type), []).append(_dump_record(batch))
            return groups

        pools: dict[str, dict[str, Any]] = {}
        for company, form_type, number in sorted(state.reserved_numbers):
            entry = pools.setdefault(
                _pair_key(company, form_type),
                {"company": company, "form_type": form_type, "numbers": []},
            )
            entry["numbers"].append(number)
        return pools

    def _dump(self, state: MemoryState, collections: Sequence[str]) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)
        for collection in collections:
            path = self._path(collection)
            tmp = path.with_name(path.name + ".tmp")
            tmp.write_text(
                json.dumps(self._serialize(state, collection), ensure_ascii=False, indent=2),
                encoding="utf-8",
            )
            os.replace(tmp, path)
