"""
Service para Pedidos
Proyecto: Control de Formatos (SGV)

Registro de pedidos de impresión. La creación asigna la numeración y
materializa los formatos en una sola unidad de trabajo: o se crean el
pedido y todos sus formatos, o nada.
"""

import logging
from decimal import Decimal
from typing import Any, Optional

from control_formatos.core.config import Settings
from control_formatos.core.exceptions import BusinessValidationError, NotFoundError
from control_formatos.schemas import (
    OrderCreate,
    OrderFilter,
    OrderRead,
    OrderStatus,
    OrderUpdate,
    PaymentStatus,
)
from control_formatos.schemas.common import new_id, utcnow
from control_formatos.services.materializer import UnitMaterializer
from control_formatos.services.numeration_service import NumerationAllocator
from control_formatos.storage.base import Store, UnitOfWork

# Logger para este módulo
logger = logging.getLogger(__name__)

REQUIRED_FIELDS = {
    "order_date": "La fecha del pedido es requerida",
    "status": "El estado del pedido es requerido",
    "payment_status": "El estado de pago es requerido",
    "amount": "El monto es requerido",
}


def validate_order_fields(fields: dict[str, Any]) -> dict[str, str]:
    """
    Reglas de negocio del pedido.

    Args:
        fields: Campos del pedido (creación o resultado de una actualización)

    Returns:
        Mensajes de error por campo; vacío si el pedido es válido
    """
    errors: dict[str, str] = {}

    quantity = fields.get("quantity")
    if quantity is None or quantity <= 0:
        errors["quantity"] = "La cantidad debe ser mayor a 0"

    starting_number = fields.get("starting_number")
    if starting_number is not None and starting_number < 0:
        errors["starting_number"] = "La numeración inicial no puede ser negativa"

    amount = fields.get("amount")
    if amount is None:
        amount = Decimal("0")
    if amount < 0:
        errors["amount"] = "El monto no puede ser negativo"

    if fields.get("status") == OrderStatus.PICKED_UP:
        if fields.get("pickup_date") is None:
            errors["pickup_date"] = "La fecha de recojo es requerida cuando el pedido está recogido"
        if amount <= 0 and "amount" not in errors:
            errors["amount"] = "El monto es requerido cuando el pedido está recogido"

    if fields.get("payment_status") == PaymentStatus.PAID and fields.get("payment_date") is None:
        errors["payment_date"] = "La fecha de pago es requerida cuando el pedido está pagado"

    return errors


class OrderService:
    """
    Service para la gestión de los pedidos.

    Cantidad, numeración, empresa y formato se fijan al crear el pedido:
    definen el rango de formatos materializado.
    """

    def __init__(
        self,
        store: Store,
        settings: Settings,
        allocator: Optional[NumerationAllocator] = None,
        materializer: Optional[UnitMaterializer] = None,
    ) -> None:
        self.store = store
        self.allocator = allocator or NumerationAllocator(store)
        self.materializer = materializer or UnitMaterializer(settings)

    @staticmethod
    async def _resolve_pair(uow: UnitOfWork, company_name: str, form_type_name: str) -> tuple[str, str]:
        """Nombres registrados de la empresa y del formato del pedido."""
        company = await uow.companies.find_by_name(company_name)
        if company is None:
            raise BusinessValidationError.from_fields({"company": f"La empresa '{company_name}' no existe"})
        if not company.is_active:
            raise BusinessValidationError.from_fields({"company": f"La empresa '{company.name}' está desactivada"})

        form_type = await uow.form_types.find_by_name(company.id, form_type_name)
        if form_type is None:
            raise BusinessValidationError.from_fields({
                "form_type": f"El formato '{form_type_name}' no existe para la empresa '{company.name}'"
            })
        if not form_type.is_active:
            raise BusinessValidationError.from_fields({"form_type": f"El formato '{form_type.name}' está desactivado"})

        return company.name, form_type.name

    async def create_order(self, data: OrderCreate) -> OrderRead:
        """
        Registra un pedido y genera sus formatos.

        Si ``starting_number`` es None o 0 se asigna el siguiente número
        libre del par (empresa, formato).

        Args:
            data: Datos del pedido

        Returns:
            OrderRead: Pedido creado con la numeración definitiva

        Raises:
            BusinessValidationError: Si los datos violan una regla de negocio
            IntegrityViolationError: Si el rango choca con números ya emitidos
            StorageUnavailableError: Si el almacenamiento no es accesible
        """
        errors = validate_order_fields(data.model_dump())
        if errors:
            logger.warning("Pedido rechazado para %s / %s: %s", data.company, data.form_type, errors)
            raise BusinessValidationError.from_fields(errors)

        async with self.store.unit_of_work() as uow:
            company, form_type = await self._resolve_pair(uow, data.company, data.form_type)

            starting_number = data.starting_number
            if not starting_number:
                starting_number = await self.allocator.allocate(uow, form_type, company)

            now = utcnow()
            order = OrderRead(
                **data.model_dump(exclude={"company", "form_type", "starting_number"}),
                id=new_id(),
                company=company,
                form_type=form_type,
                starting_number=starting_number,
                created_at=now,
                updated_at=now,
            )
            await uow.orders.add(order)
            await self.materializer.materialize(uow, order)

        logger.info(
            "Pedido creado: %s - %s / %s, números %s-%s",
            order.id, order.company, order.form_type, order.starting_number, order.ending_number,
        )
        return order

    async def get_order(self, order_id: str) -> Optional[OrderRead]:
        async with self.store.unit_of_work() as uow:
            return await uow.orders.get(order_id)

    async def list_orders(self, filters: Optional[OrderFilter] = None) -> list[OrderRead]:
        """
        Lista los pedidos, del más reciente al más antiguo.

        Args:
            filters: Empresa (contiene), formato, estados y rango de fechas
        """
        async with self.store.unit_of_work() as uow:
            return await uow.orders.filter(filters or OrderFilter())

    async def search_orders(self, text: str) -> list[OrderRead]:
        """Busca por empresa, formato o estado; sin texto devuelve todos."""
        text = text.strip()
        async with self.store.unit_of_work() as uow:
            if not text:
                return await uow.orders.filter(OrderFilter())
            return await uow.orders.search(text)

    async def update_order(self, order_id: str, data: OrderUpdate) -> OrderRead:
        """
        Actualiza fecha, estados, fechas de recojo/pago y monto de un pedido.

        Las reglas se validan sobre el pedido resultante, no solo sobre
        los campos enviados.

        Raises:
            NotFoundError: Si el pedido no existe
            BusinessValidationError: Si el pedido resultante no es válido o
                se envía None en un campo obligatorio
        """
        update_data = data.model_dump(exclude_unset=True)

        async with self.store.unit_of_work() as uow:
            order = await uow.orders.get(order_id)
            if order is None:
                raise NotFoundError(f"Pedido con ID {order_id} no encontrado")

            merged = {**order.model_dump(), **update_data}
            errors = validate_order_fields(merged)
            for name, message in REQUIRED_FIELDS.items():
                if name in update_data and update_data[name] is None:
                    errors[name] = message
            if errors:
                logger.warning("Actualización rechazada del pedido %s: %s", order_id, errors)
                raise BusinessValidationError.from_fields(errors)

            updated = await uow.orders.update(order_id, update_data)

        logger.info("Pedido actualizado: %s - campos %s", order_id, sorted(update_data))
        return updated

    async def delete_order(self, order_id: str) -> int:
        """
        Elimina un pedido y todos sus formatos.

        Sus números quedan libres: el asignador los vuelve a ofrecer si
        eran los más altos del par.

        Returns:
            int: Formatos eliminados

        Raises:
            NotFoundError: Si el pedido no existe
        """
        async with self.store.unit_of_work() as uow:
            order = await uow.orders.get(order_id)
            if order is None:
                raise NotFoundError(f"Pedido con ID {order_id} no encontrado")

            removed = await uow.units.delete_by_order(order_id)
            await uow.orders.delete(order_id)

        logger.info(
            "Pedido eliminado: %s - %s / %s (%s formatos, números %s-%s)",
            order_id, order.company, order.form_type, removed, order.starting_number, order.ending_number,
        )
        return removed
