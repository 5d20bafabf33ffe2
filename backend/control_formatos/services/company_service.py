"""
Service para Empresas y Tipos de Formato
Proyecto: Control de Formatos (SGV)

Configuración de las empresas clientes y de los formatos que imprimen.
Los pedidos referencian ambos por nombre, por eso:
- el nombre de empresa es único (sin distinguir mayúsculas)
- el nombre de formato es único dentro de su empresa
- no se elimina lo que todavía referencia algún pedido
"""

import logging
from typing import Optional

from control_formatos.core.exceptions import BusinessValidationError, DuplicateError, NotFoundError
from control_formatos.schemas import (
    CompanyCreate,
    CompanyRead,
    CompanyUpdate,
    FormTypeCreate,
    FormTypeRead,
    FormTypeUpdate,
)
from control_formatos.schemas.common import new_id, utcnow
from control_formatos.storage.base import Store, UnitOfWork

# Logger para este módulo
logger = logging.getLogger(__name__)


class CompanyService:
    """
    Service para la gestión de las empresas.

    Implementa:
    - Unicidad del nombre antes de crear/renombrar
    - Desactivación en lugar de borrado mientras haya referencias
    """

    def __init__(self, store: Store) -> None:
        self.store = store

    async def list_companies(self, active_only: bool = False) -> list[CompanyRead]:
        """
        Lista las empresas ordenadas por nombre.

        Args:
            active_only: Si True excluye las empresas desactivadas

        Returns:
            Lista de empresas
        """
        async with self.store.unit_of_work() as uow:
            if active_only:
                return await uow.companies.list(is_active=True)
            return await uow.companies.list()

    async def get_company(self, company_id: str) -> Optional[CompanyRead]:
        async with self.store.unit_of_work() as uow:
            return await uow.companies.get(company_id)

    async def get_company_by_name(self, name: str) -> Optional[CompanyRead]:
        async with self.store.unit_of_work() as uow:
            return await uow.companies.find_by_name(name)

    async def create_company(self, data: CompanyCreate) -> CompanyRead:
        """
        Registra una nueva empresa.

        Raises:
            DuplicateError: Si ya existe una empresa con el mismo nombre
        """
        async with self.store.unit_of_work() as uow:
            existing = await uow.companies.find_by_name(data.name)
            if existing is not None:
                logger.warning("Intento de crear empresa duplicada: %s (existente: %s)", data.name, existing.id)
                raise DuplicateError(f"La empresa '{data.name}' ya está registrada")

            now = utcnow()
            company = CompanyRead(id=new_id(), created_at=now, updated_at=now, **data.model_dump())
            await uow.companies.add(company)

        logger.info("Empresa creada: %s - %s", company.id, company.name)
        return company

    async def update_company(self, company_id: str, data: CompanyUpdate) -> CompanyRead:
        """
        Actualiza una empresa.

        Un cambio de nombre no se propaga a los pedidos existentes,
        que siguen referenciando el nombre anterior.

        Raises:
            NotFoundError: Si la empresa no existe
            DuplicateError: Si el nuevo nombre ya está en uso
        """
        update_data = data.model_dump(exclude_unset=True)

        async with self.store.unit_of_work() as uow:
            company = await uow.companies.get(company_id)
            if company is None:
                raise NotFoundError(f"Empresa con ID {company_id} no encontrada")

            new_name = update_data.get("name")
            if new_name and new_name.casefold() != company.name.casefold():
                existing = await uow.companies.find_by_name(new_name)
                if existing is not None and existing.id != company_id:
                    logger.warning("Intento de renombrar empresa %s a un nombre en uso: %s", company_id, new_name)
                    raise DuplicateError(f"La empresa '{new_name}' ya está registrada")

            if new_name and new_name != company.name:
                orders = await uow.orders.list(company=company.name)
                if orders:
                    logger.warning(
                        "Empresa %s renombrada con %s pedidos que conservan el nombre '%s'",
                        company_id, len(orders), company.name,
                    )

            updated = await uow.companies.update(company_id, update_data)

        logger.info("Empresa actualizada: %s - campos %s", company_id, sorted(update_data))
        return updated

    async def set_active(self, company_id: str, is_active: bool) -> CompanyRead:
        """Activa o desactiva una empresa."""
        return await self.update_company(company_id, CompanyUpdate(is_active=is_active))

    async def delete_company(self, company_id: str) -> None:
        """
        Elimina una empresa sin referencias.

        Raises:
            NotFoundError: Si la empresa no existe
            BusinessValidationError: Si tiene pedidos o tipos de formato
        """
        async with self.store.unit_of_work() as uow:
            company = await uow.companies.get(company_id)
            if company is None:
                raise NotFoundError(f"Empresa con ID {company_id} no encontrada")

            orders = await uow.orders.list(company=company.name)
            form_types = await uow.form_types.list(company_id=company_id)
            if orders or form_types:
                logger.warning(
                    "Eliminación rechazada de la empresa %s: %s pedidos, %s formatos",
                    company.name, len(orders), len(form_types),
                )
                raise BusinessValidationError.from_fields({
                    "company": (
                        f"La empresa '{company.name}' tiene {len(orders)} pedidos y "
                        f"{len(form_types)} tipos de formato: desactívela en su lugar"
                    )
                })

            await uow.companies.delete(company_id)

        logger.info("Empresa eliminada: %s - %s", company_id, company.name)


class FormTypeService:
    """Service para la gestión de los tipos de formato de cada empresa."""

    def __init__(self, store: Store) -> None:
        self.store = store

    @staticmethod
    async def _require_company(uow: UnitOfWork, company_id: str) -> CompanyRead:
        company = await uow.companies.get(company_id)
        if company is None:
            raise NotFoundError(f"Empresa con ID {company_id} no encontrada")
        return company

    async def list_form_types(self, company_id: Optional[str] = None, active_only: bool = False) -> list[FormTypeRead]:
        """
        Lista los tipos de formato, de una empresa o de todas.

        Args:
            company_id: Id de la empresa (None = todas)
            active_only: Si True excluye los formatos desactivados
        """
        criteria = {}
        if company_id is not None:
            criteria["company_id"] = company_id
        if active_only:
            criteria["is_active"] = True

        async with self.store.unit_of_work() as uow:
            return await uow.form_types.list(**criteria)

    async def get_form_type(self, form_type_id: str) -> Optional[FormTypeRead]:
        async with self.store.unit_of_work() as uow:
            return await uow.form_types.get(form_type_id)

    async def create_form_type(self, data: FormTypeCreate) -> FormTypeRead:
        """
        Registra un tipo de formato para una empresa.

        Raises:
            NotFoundError: Si la empresa no existe
            DuplicateError: Si la empresa ya tiene un formato con ese nombre
        """
        async with self.store.unit_of_work() as uow:
            company = await self._require_company(uow, data.company_id)

            if await uow.form_types.find_by_name(company.id, data.name) is not None:
                logger.warning("Formato duplicado para %s: %s", company.name, data.name)
                raise DuplicateError(f"La empresa '{company.name}' ya tiene el formato '{data.name}'")

            now = utcnow()
            form_type = FormTypeRead(id=new_id(), created_at=now, updated_at=now, **data.model_dump())
            await uow.form_types.add(form_type)

        logger.info("Tipo de formato creado: %s - %s (%s)", form_type.id, form_type.name, company.name)
        return form_type

    async def update_form_type(self, form_type_id: str, data: FormTypeUpdate) -> FormTypeRead:
        """
        Actualiza un tipo de formato.

        Raises:
            NotFoundError: Si el formato no existe
            DuplicateError: Si el nuevo nombre ya está en uso en la empresa
        """
        update_data = data.model_dump(exclude_unset=True)

        async with self.store.unit_of_work() as uow:
            form_type = await uow.form_types.get(form_type_id)
            if form_type is None:
                raise NotFoundError(f"Tipo de formato con ID {form_type_id} no encontrado")

            new_name = update_data.get("name")
            if new_name and new_name.casefold() != form_type.name.casefold():
                if await uow.form_types.find_by_name(form_type.company_id, new_name) is not None:
                    raise DuplicateError(f"El formato '{new_name}' ya existe en la empresa")

            if new_name and new_name != form_type.name:
                company = await uow.companies.get(form_type.company_id)
                orders = await uow.orders.list(company=company.name, form_type=form_type.name) if company else []
                if orders:
                    logger.warning(
                        "Formato %s renombrado con %s pedidos que conservan el nombre '%s'",
                        form_type_id, len(orders), form_type.name,
                    )

            updated = await uow.form_types.update(form_type_id, update_data)

        logger.info("Tipo de formato actualizado: %s - campos %s", form_type_id, sorted(update_data))
        return updated

    async def delete_form_type(self, form_type_id: str) -> None:
        """
        Elimina un tipo de formato sin pedidos.

        Raises:
            NotFoundError: Si el formato no existe
            BusinessValidationError: Si hay pedidos del par (empresa, formato)
        """
        async with self.store.unit_of_work() as uow:
            form_type = await uow.form_types.get(form_type_id)
            if form_type is None:
                raise NotFoundError(f"Tipo de formato con ID {form_type_id} no encontrado")

            company = await self._require_company(uow, form_type.company_id)
            orders = await uow.orders.list(company=company.name, form_type=form_type.name)
            if orders:
                logger.warning(
                    "Eliminación rechazada del formato %s (%s): %s pedidos",
                    form_type.name, company.name, len(orders),
                )
                raise BusinessValidationError.from_fields({
                    "form_type": f"El formato '{form_type.name}' tiene {len(orders)} pedidos"
                })

            await uow.form_types.delete(form_type_id)

        logger.info("Tipo de formato eliminado: %s - %s", form_type_id, form_type.name)
