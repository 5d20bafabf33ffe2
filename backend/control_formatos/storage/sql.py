"""
Store SQLAlchemy - motor SQLite embebido
Proyecto: Control de Formatos (SGV)

Una sesión y una transacción (``session.begin()``) por unidad de trabajo.
Los errores del motor se traducen a excepciones de la aplicación después
del rollback.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional, Sequence

from sqlalchemy import delete, func, insert, or_, select
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from control_formatos.core.config import Settings
from control_formatos.core.database import build_engine, build_session_factory, close_db, init_db
from control_formatos.core.exceptions import IntegrityViolationError, StorageUnavailableError
from control_formatos.models import Batch, Company, FormType, Order, ReservedNumber, Unit
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
    record_values,
)

logger = logging.getLogger(__name__)


class SqlRepository(Repository[RecordT]):
    """Implementación genérica sobre un modelo mapeado."""

    model: Any
    schema: type
    order_by: tuple[str, ...] = ()

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    def _to_record(self, obj: Any) -> RecordT:
        return self.schema.model_validate(obj)

    def _ordering(self) -> list:
        return [getattr(self.model, column) for column in self.order_by]

    async def get(self, record_id: str) -> Optional[RecordT]:
        obj = await self.session.get(self.model, record_id)
        return self._to_record(obj) if obj is not None else None

    async def list(self, **criteria: Any) -> list[RecordT]:
        criteria = {key: plain_value(value) for key, value in criteria.items()}
        query = select(self.model).filter_by(**criteria).order_by(*self._ordering())
        result = await self.session.execute(query)
        return [self._to_record(obj) for obj in result.scalars().all()]

    async def add(self, record: RecordT) -> RecordT:
        self.session.add(self.model(**record_values(record)))
        await self.session.flush()
        return record

    async def add_many(self, records: Sequence[RecordT]) -> None:
        if not records:
            return
        await self.session.execute(insert(self.model), [record_values(r) for r in records])

    async def update(self, record_id: str, fields: dict[str, Any]) -> Optional[RecordT]:
        obj = await self.session.get(self.model, record_id)
        if obj is None:
            return None

        for key, value in fields.items():
            setattr(obj, key, plain_value(value))
        obj.updated_at = utcnow()

        await self.session.flush()
        return self._to_record(obj)

    async def delete(self, record_id: str) -> bool:
        obj = await self.session.get(self.model, record_id)
        if obj is None:
            return False
        await self.session.delete(obj)
        await self.session.flush()
        return True


class SqlCompanyRepository(SqlRepository[CompanyRead], CompanyRepository):
    model = Company
    schema = CompanyRead
    order_by = ("name",)

    async def find_by_name(self, name: str) -> Optional[CompanyRead]:
        result = await self.session.execute(
            select(Company).where(func.lower(Company.name) == func.lower(name))
        )
        obj = result.scalars().first()
        return self._to_record(obj) if obj is not None else None


class SqlFormTypeRepository(SqlRepository[FormTypeRead], FormTypeRepository):
    model = FormType
    schema = FormTypeRead
    order_by = ("name",)

    async def find_by_name(self, company_id: str, name: str) -> Optional[FormTypeRead]:
        result = await self.session.execute(
            select(FormType).where(
                FormType.company_id == company_id,
                func.lower(FormType.name) == func.lower(name),
            )
        )
        obj = result.scalars().first()
        return self._to_record(obj) if obj is not None else None


class SqlOrderRepository(SqlRepository[OrderRead], OrderRepository):
    model = Order
    schema = OrderRead

    def _ordering(self) -> list:
        return [Order.order_date.desc(), Order.created_at.desc()]

    async def filter(self, filters: OrderFilter) -> list[OrderRead]:
        query = select(Order)

        if filters.company:
            query = query.where(Order.company.ilike(f"%{filters.company}%"))
        if filters.form_type:
            query = query.where(Order.form_type == filters.form_type)
        if filters.status is not None:
            query = query.where(Order.status == filters.status.value)
        if filters.payment_status is not None:
            query = query.where(Order.payment_status == filters.payment_status.value)
        if filters.date_from is not None:
            query = query.where(Order.order_date >= filters.date_from)
        if filters.date_to is not None:
            query = query.where(Order.order_date <= filters.date_to)

        result = await self.session.execute(query.order_by(*self._ordering()))
        return [self._to_record(obj) for obj in result.scalars().all()]

    async def search(self, text: str) -> list[OrderRead]:
        pattern = f"%{text}%"
        query = (
            select(Order)
            .where(
                or_(
                    Order.company.ilike(pattern),
                    Order.form_type.ilike(pattern),
                    Order.status.ilike(pattern),
                )
            )
            .order_by(*self._ordering())
        )
        result = await self.session.execute(query)
        return [self._to_record(obj) for obj in result.scalars().all()]


class SqlUnitRepository(SqlRepository[UnitRead], UnitRepository):
    model = Unit
    schema = UnitRead
    order_by = ("number",)

    @staticmethod
    def _pair(query, company: str, form_type: str):
        return query.join(Order, Unit.order_id == Order.id).where(
            Order.company == company,
            Order.form_type == form_type,
        )

    async def max_number(self, company: str, form_type: str) -> Optional[int]:
        query = self._pair(select(func.max(Unit.number)), company, form_type)
        return (await self.session.execute(query)).scalar()

    async def numbers_in_range(
        self, company: str, form_type: str, number_from: int, number_to: int
    ) -> list[int]:
        query = self._pair(select(Unit.number), company, form_type).where(
            Unit.number.between(number_from, number_to)
        )
        result = await self.session.execute(query.order_by(Unit.number))
        return list(result.scalars().all())

    async def list_for_pair(
        self, company: str, form_type: str, status: Optional[UnitStatus] = None
    ) -> list[UnitRead]:
        query = self._pair(select(Unit), company, form_type)
        if status is not None:
            query = query.where(Unit.status == status.value)
        result = await self.session.execute(query.order_by(Unit.number))
        return [self._to_record(obj) for obj in result.scalars().all()]

    async def filter(self, filters: UnitFilter) -> list[UnitRead]:
        query = select(Unit).join(Order, Unit.order_id == Order.id)

        if filters.order_id:
            query = query.where(Unit.order_id == filters.order_id)
        if filters.status is not None:
            query = query.where(Unit.status == filters.status.value)
        if filters.company:
            query = query.where(Order.company == filters.company)
        if filters.form_type:
            query = query.where(Order.form_type == filters.form_type)
        if filters.number_from is not None:
            query = query.where(Unit.number >= filters.number_from)
        if filters.number_to is not None:
            query = query.where(Unit.number <= filters.number_to)

        result = await self.session.execute(query.order_by(Order.company, Order.form_type, Unit.number))
        return [self._to_record(obj) for obj in result.scalars().all()]

    async def delete_by_order(self, order_id: str) -> int:
        result = await self.session.execute(delete(Unit).where(Unit.order_id == order_id))
        return result.rowcount

    async def count_by_status(self) -> dict[str, int]:
        result = await self.session.execute(
            select(Unit.status, func.count(Unit.id)).group_by(Unit.status)
        )
        return {status: count for status, count in result.all()}


class SqlBatchRepository(SqlRepository[BatchRead], BatchRepository):
    model = Batch
    schema = BatchRead
    order_by = ("company", "form_type", "number_from")

    async def load(self, company: str, form_type: str) -> list[BatchRead]:
        return await self.list(company=company, form_type=form_type)

    async def replace(self, company: str, form_type: str, batches: Sequence[BatchRead]) -> None:
        await self.session.execute(
            delete(Batch).where(Batch.company == company, Batch.form_type == form_type)
        )
        await self.add_many(batches)

    async def get_many(self, batch_ids: Sequence[str]) -> list[BatchRead]:
        if not batch_ids:
            return []
        result = await self.session.execute(
            select(Batch).where(Batch.id.in_(list(batch_ids))).order_by(Batch.number_from)
        )
        return [self._to_record(obj) for obj in result.scalars().all()]

    async def delete_sets(self, company: Optional[str] = None, form_type: Optional[str] = None) -> int:
        statement = delete(Batch)
        if company is not None:
            statement = statement.where(Batch.company == company)
        if form_type is not None:
            statement = statement.where(Batch.form_type == form_type)
        result = await self.session.execute(statement)
        return result.rowcount


class SqlReservedNumberRepository(ReservedNumberRepository):

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def list(self, company: str, form_type: str) -> list[int]:
        result = await self.session.execute(
            select(ReservedNumber.number)
            .where(ReservedNumber.company == company, ReservedNumber.form_type == form_type)
            .order_by(ReservedNumber.number)
        )
        return list(result.scalars().all())

    async def all(self) -> list[ReservedNumberRead]:
        result = await self.session.execute(
            select(ReservedNumber).order_by(
                ReservedNumber.company, ReservedNumber.form_type, ReservedNumber.number
            )
        )
        return [ReservedNumberRead.model_validate(obj) for obj in result.scalars().all()]

    async def add(self, company: str, form_type: str, number: int) -> None:
        if await self.session.get(ReservedNumber, (company, form_type, number)) is None:
            self.session.add(ReservedNumber(company=company, form_type=form_type, number=number))
            await self.session.flush()

    async def remove(self, company: str, form_type: str, number: int) -> bool:
        obj = await self.session.get(ReservedNumber, (company, form_type, number))
        if obj is None:
            return False
        await self.session.delete(obj)
        await self.session.flush()
        return True


class SqlUnitOfWork(UnitOfWork):

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.companies = SqlCompanyRepository(session)
        self.form_types = SqlFormTypeRepository(session)
        self.orders = SqlOrderRepository(session)
        self.units = SqlUnitRepository(session)
        self.batches = SqlBatchRepository(session)
        self.reserved_numbers = SqlReservedNumberRepository(session)


class SqlStore(Store):
    """Store sobre SQLAlchemy async + aiosqlite."""

    backend = "sqlite"

    def __init__(self, settings: Settings) -> None:
        super().__init__()
        self.settings = settings
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker[AsyncSession]] = None

    async def open(self) -> None:
        if self._engine is not None:
            return
        try:
            engine = build_engine(self.settings)
        except OSError as exc:
            raise StorageUnavailableError(f"Base de datos no accesible: {exc}") from exc

        try:
            await init_db(engine)
        except (OperationalError, InterfaceError) as exc:
            await engine.dispose()
            raise StorageUnavailableError(f"Base de datos no accesible: {exc}") from exc

        self._engine = engine
        self._session_factory = build_session_factory(engine)

    async def close(self) -> None:
        if self._engine is None:
            return
        await close_db(self._engine)
        self._engine = None
        self._session_factory = None

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[UnitOfWork]:
        if self._session_factory is None:
            raise StorageUnavailableError("El almacenamiento no está abierto")

        try:
            async with self._session_factory() as session:
                async with session.begin():
                    yield SqlUnitOfWork(session)
        except IntegrityError as exc:
            logger.warning("Transacción revertida por violación de integridad: %s", exc.orig)
            raise IntegrityViolationError(f"Violación de integridad: {exc.orig}") from exc
        except (OperationalError, InterfaceError) as exc:
            logger.error("Error de la base de datos, transacción revertida: %s", exc)
            raise StorageUnavailableError(f"Base de datos no accesible: {exc.orig}") from exc
