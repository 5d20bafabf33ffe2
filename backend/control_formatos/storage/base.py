"""
Contrato de acceso a datos - Repository y Unit of Work
Proyecto: Control de Formatos (SGV)

Define la interfaz de repositorio genérica, parametrizada por tipo de
registro e implementada una vez por tipo de entidad, y el Store que
abre unidades de trabajo atómicas sobre ellos.

Los dos motores (SQLAlchemy y archivos JSON) implementan exactamente
estas interfaces; la lógica de negocio nunca distingue el motor.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from enum import Enum
from typing import Any, AsyncContextManager, AsyncIterator, Generic, Optional, Sequence, TypeVar

from pydantic import BaseModel

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

logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT", bound=BaseModel)


def record_values(record: BaseModel) -> dict[str, Any]:
    """
    Valores persistibles de un registro.

    Excluye los computed field y convierte los Enum en su valor.
    """
    values = record.model_dump(exclude=set(type(record).model_computed_fields))
    return {key: plain_value(value) for key, value in values.items()}


def plain_value(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


# ------------------------------------------------------------
# Repositorio genérico
# ------------------------------------------------------------

class Repository(ABC, Generic[RecordT]):
    """
    Repositorio de un tipo de entidad identificada por id opaco.

    ``get``/``update`` devuelven None si el id no existe: la existencia
    la exige, si corresponde, la capa de servicios.
    """

    @abstractmethod
    async def get(self, record_id: str) -> Optional[RecordT]:
        ...

    @abstractmethod
    async def list(self, **criteria: Any) -> list[RecordT]:
        """Registros cuyos campos son iguales a ``criteria``."""

    @abstractmethod
    async def add(self, record: RecordT) -> RecordT:
        ...

    @abstractmethod
    async def add_many(self, records: Sequence[RecordT]) -> None:
        ...

    @abstractmethod
    async def update(self, record_id: str, fields: dict[str, Any]) -> Optional[RecordT]:
        ...

    @abstractmethod
    async def delete(self, record_id: str) -> bool:
        ...


class CompanyRepository(Repository[CompanyRead]):

    @abstractmethod
    async def find_by_name(self, name: str) -> Optional[CompanyRead]:
        """Búsqueda por nombre sin distinguir mayúsculas."""


class FormTypeRepository(Repository[FormTypeRead]):

    @abstractmethod
    async def find_by_name(self, company_id: str, name: str) -> Optional[FormTypeRead]:
        """Búsqueda por nombre dentro de una empresa, sin distinguir mayúsculas."""


class OrderRepository(Repository[OrderRead]):

    @abstractmethod
    async def filter(self, filters: OrderFilter) -> list[OrderRead]:
        """Pedidos filtrados, del más reciente al más antiguo."""

    @abstractmethod
    async def search(self, text: str) -> list[OrderRead]:
        """Pedidos cuyo nombre de empresa, formato o estado contiene ``text``."""


class UnitRepository(Repository[UnitRead]):

    @abstractmethod
    async def max_number(self, company: str, form_type: str) -> Optional[int]:
        """Mayor número emitido para el par, None si el par no tiene formatos."""

    @abstractmethod
    async def numbers_in_range(
        self, company: str, form_type: str, number_from: int, number_to: int
    ) -> list[int]:
        """Números ya emitidos del par dentro del rango cerrado."""

    @abstractmethod
    async def list_for_pair(
        self, company: str, form_type: str, status: Optional[UnitStatus] = None
    ) -> list[UnitRead]:
        """Formatos del par ordenados por número."""

    @abstractmethod
    async def filter(self, filters: UnitFilter) -> list[UnitRead]:
        ...

    @abstractmethod
    async def delete_by_order(self, order_id: str) -> int:
        ...

    @abstractmethod
    async def count_by_status(self) -> dict[str, int]:
        ...


class BatchRepository(Repository[BatchRead]):

    @abstractmethod
    async def load(self, company: str, form_type: str) -> list[BatchRead]:
        """Talonarios guardados del par, ordenados por inicio de rango."""

    @abstractmethod
    async def replace(self, company: str, form_type: str, batches: Sequence[BatchRead]) -> None:
        """Sustituye el conjunto guardado del par."""

    @abstractmethod
    async def get_many(self, batch_ids: Sequence[str]) -> list[BatchRead]:
        ...

    @abstractmethod
    async def delete_sets(self, company: Optional[str] = None, form_type: Optional[str] = None) -> int:
        ...


class ReservedNumberRepository(ABC):
    """Reserva de números devueltos pero no usados, por (empresa, formato)."""

    @abstractmethod
    async def list(self, company: str, form_type: str) -> list[int]:
        """Números reservados del par en orden ascendente."""

    @abstractmethod
    async def all(self) -> list[ReservedNumberRead]:
        ...

    @abstractmethod
    async def add(self, company: str, form_type: str, number: int) -> None:
        ...

    @abstractmethod
    async def remove(self, company: str, form_type: str, number: int) -> bool:
        ...


# ------------------------------------------------------------
# Unit of Work y Store
# ------------------------------------------------------------

class UnitOfWork:
    """Repositorios de una transacción: todo se confirma o nada."""

    companies: CompanyRepository
    form_types: FormTypeRepository
    orders: OrderRepository
    units: UnitRepository
    batches: BatchRepository
    reserved_numbers: ReservedNumberRepository


class Store(ABC):
    """
    Almacenamiento de la aplicación.

    Se construye una vez al arrancar, se abre con ``open()`` y se
    cierra explícitamente con ``close()``. Las unidades de trabajo se
    serializan con un lock: no hay dos operaciones intercaladas.
    """

    backend: str = ""

    def __init__(self) -> None:
        self._lock = asyncio.Lock()

    @abstractmethod
    async def open(self) -> None:
        ...

    @abstractmethod
    async def close(self) -> None:
        ...

    @abstractmethod
    def _transaction(self) -> AsyncContextManager[UnitOfWork]:
        ...

    @asynccontextmanager
    async def unit_of_work(self) -> AsyncIterator[UnitOfWork]:
        """
        Abre una unidad de trabajo atómica.

        Si el bloque lanza una excepción no queda ninguna mutación.

        Raises:
            StorageUnavailableError: Si el almacenamiento no es accesible
            IntegrityViolationError: Si el motor rechaza una violación de unicidad
        """
        async with self._lock:
            async with self._transaction() as uow:
                yield uow
