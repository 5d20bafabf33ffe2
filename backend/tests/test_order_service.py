"""
Tests de OrderService: creación con materialización atómica,
reglas de negocio, actualización y eliminación en cascada.
"""

import datetime
from decimal import Decimal
from unittest.mock import patch

import pytest

from control_formatos.core.exceptions import (
    BusinessValidationError,
    IntegrityViolationError,
    NotFoundError,
)
from control_formatos.schemas import (
    CompanyUpdate,
    OrderFilter,
    OrderStatus,
    OrderUpdate,
    PaymentStatus,
    UnitFilter,
    UnitStatus,
)
from control_formatos.services import UnitMaterializer


# ============================================================
# Creación y materialización
# ============================================================


class TestCreateOrder:
    """Creación de pedidos y generación de formatos."""

    def test_scenario_first_order(self, run_app, seed_pair, order_data):
        """Test primer pedido de 50: formatos 1..50 disponibles."""
        async def scenario(app):
            await seed_pair(app)
            order = await app.orders.create_order(order_data(50))
            units = await app.units.list_units(UnitFilter(order_id=order.id))
            return order, units

        order, units = run_app(scenario)
        assert order.starting_number == 1
        assert order.ending_number == 50
        assert [u.number for u in units] == list(range(1, 51))
        assert all(u.status == UnitStatus.AVAILABLE for u in units)
        assert all(u.current_location == "Warehouse" for u in units)

    def test_scenario_second_order(self, run_app, seed_pair, order_data):
        """Test segundo pedido de 30 con numeración automática: 51..80."""
        async def scenario(app):
            await seed_pair(app)
            await app.orders.create_order(order_data(50))
            order = await app.orders.create_order(order_data(30, starting_number=0))
            units = await app.units.list_units(UnitFilter(order_id=order.id))
            return order, units

        order, units = run_app(scenario)
        assert order.starting_number == 51
        assert [u.number for u in units] == list(range(51, 81))

    def test_entry_date_from_pickup_date(self, run_app, seed_pair, order_data):
        """Test la fecha de ingreso es la de recojo si existe."""
        pickup = datetime.date(2024, 2, 1)

        async def scenario(app):
            await seed_pair(app)
            order = await app.orders.create_order(
                order_data(3, status=OrderStatus.PICKED_UP, pickup_date=pickup, amount=Decimal("120.00"))
            )
            return await app.units.list_units(UnitFilter(order_id=order.id))

        assert {u.entry_date for u in run_app(scenario)} == {pickup}

    def test_entry_date_defaults_to_today(self, run_app, seed_pair, order_data):
        """Test sin fecha de recojo la fecha de ingreso es hoy."""
        async def scenario(app):
            await seed_pair(app)
            order = await app.orders.create_order(order_data(2))
            return await app.units.list_units(UnitFilter(order_id=order.id))

        assert {u.entry_date for u in run_app(scenario)} == {datetime.date.today()}

    def test_names_resolved_to_registered_case(self, run_app, seed_pair, order_data):
        """Test el pedido usa los nombres registrados de empresa y formato."""
        async def scenario(app):
            await seed_pair(app)
            await app.orders.create_order(order_data(10))
            return await app.orders.create_order(order_data(5, company="ACME", form_type="invoice"))

        order = run_app(scenario)
        assert (order.company, order.form_type) == ("Acme", "Invoice")
        assert order.starting_number == 11

    def test_numbers_unique_and_within_order_ranges(self, run_app, seed_pair, order_data):
        """Test los números del par son únicos y cubren exactamente los rangos de los pedidos."""
        async def scenario(app):
            await seed_pair(app)
            orders = [
                await app.orders.create_order(order_data(7)),
                await app.orders.create_order(order_data(4, starting_number=100)),
                await app.orders.create_order(order_data(12)),
            ]
            units = await app.units.list_units(UnitFilter(company="Acme", form_type="Invoice"))
            return orders, units

        orders, units = run_app(scenario)
        numbers = [u.number for u in units]
        expected = set()
        for order in orders:
            expected.update(range(order.starting_number, order.ending_number + 1))
        assert len(numbers) == len(set(numbers))
        assert set(numbers) == expected
        assert orders[2].starting_number == 104

    def test_overlapping_manual_range_is_rejected(self, run_app, seed_pair, order_data):
        """Test un rango manual que choca con números emitidos aborta todo."""
        async def scenario(app):
            await seed_pair(app)
            await app.orders.create_order(order_data(50))
            try:
                await app.orders.create_order(order_data(10, starting_number=45))
            except IntegrityViolationError as exc:
                return exc, await app.orders.list_orders(), await app.units.list_units()

        exc, orders, units = run_app(scenario)
        assert exc.extra["numbers"] == [45, 46, 47, 48, 49, 50]
        assert len(orders) == 1
        assert len(units) == 50

    def test_failure_mid_materialization_rolls_back(self, run_app, seed_pair, order_data):
        """Test un fallo después de insertar los formatos no deja pedido ni formatos."""
        original = UnitMaterializer.materialize

        async def failing(self, uow, order):
            await original(self, uow, order)
            raise RuntimeError("fallo simulado")

        async def scenario(app):
            await seed_pair(app)
            with patch.object(UnitMaterializer, "materialize", failing):
                with pytest.raises(RuntimeError):
                    await app.orders.create_order(order_data(20))
            return await app.orders.list_orders(), await app.units.list_units()

        orders, units = run_app(scenario)
        assert orders == []
        assert units == []


# ============================================================
# Reglas de negocio
# ============================================================


class TestOrderValidation:
    """Validaciones por campo del pedido."""

    @pytest.mark.parametrize(
        "overrides, field",
        [
            ({"quantity": 0}, "quantity"),
            ({"quantity": -5}, "quantity"),
            ({"starting_number": -1}, "starting_number"),
            ({"amount": Decimal("-1")}, "amount"),
            ({"status": OrderStatus.PICKED_UP, "amount": Decimal("10")}, "pickup_date"),
            ({"status": OrderStatus.PICKED_UP, "pickup_date": datetime.date(2024, 1, 12)}, "amount"),
            ({"payment_status": PaymentStatus.PAID}, "payment_date"),
        ],
    )
    def test_invalid_fields(self, run_app, seed_pair, order_data, overrides, field):
        """Test cada regla se informa en su campo."""
        overrides = dict(overrides)
        quantity = overrides.pop("quantity", 10)

        async def scenario(app):
            await seed_pair(app)
            await app.orders.create_order(order_data(quantity, **overrides))

        with pytest.raises(BusinessValidationError) as exc_info:
            run_app(scenario)
        assert field in exc_info.value.fields

    def test_unknown_company(self, run_app, order_data):
        """Test empresa no registrada."""
        async def scenario(app):
            await app.orders.create_order(order_data(10, company="Nadie"))

        with pytest.raises(BusinessValidationError) as exc_info:
            run_app(scenario)
        assert "company" in exc_info.value.fields

    def test_unknown_form_type(self, run_app, seed_pair, order_data):
        """Test formato no registrado para la empresa."""
        async def scenario(app):
            await seed_pair(app)
            await app.orders.create_order(order_data(10, form_type="Guía"))

        with pytest.raises(BusinessValidationError) as exc_info:
            run_app(scenario)
        assert "form_type" in exc_info.value.fields

    def test_inactive_company(self, run_app, seed_pair, order_data):
        """Test empresa desactivada."""
        async def scenario(app):
            company, _ = await seed_pair(app)
            await app.companies.update_company(company.id, CompanyUpdate(is_active=False))
            await app.orders.create_order(order_data(10))

        with pytest.raises(BusinessValidationError):
            run_app(scenario)


# ============================================================
# Actualización, eliminación y consultas
# ============================================================


class TestOrderLifecycle:
    """Actualización, borrado en cascada y listados."""

    def test_update_revalidates_merged_order(self, run_app, seed_pair, order_data):
        """Test marcar recogido sin fecha de recojo falla aunque el campo no se envíe."""
        async def scenario(app):
            await seed_pair(app)
            order = await app.orders.create_order(order_data(10, amount=Decimal("50")))
            await app.orders.update_order(order.id, OrderUpdate(status=OrderStatus.PICKED_UP))

        with pytest.raises(BusinessValidationError) as exc_info:
            run_app(scenario)
        assert "pickup_date" in exc_info.value.fields

    @pytest.mark.parametrize("field", ["order_date", "status", "payment_status", "amount"])
    def test_update_rejects_clearing_required_field(self, run_app, seed_pair, order_data, field):
        """Test enviar None en un campo obligatorio es un error por campo en ambos motores."""
        async def scenario(app):
            await seed_pair(app)
            order = await app.orders.create_order(order_data(10))
            with pytest.raises(BusinessValidationError) as exc_info:
                await app.orders.update_order(order.id, OrderUpdate(**{field: None}))
            return order, exc_info.value, await app.orders.get_order(order.id)

        order, error, stored = run_app(scenario)
        assert field in error.fields
        assert getattr(stored, field) == getattr(order, field)

    def test_update_payment(self, run_app, seed_pair, order_data):
        """Test registrar el pago de un pedido."""
        async def scenario(app):
            await seed_pair(app)
            order = await app.orders.create_order(order_data(10, amount=Decimal("50")))
            await app.orders.update_order(
                order.id,
                OrderUpdate(payment_status=PaymentStatus.PAID, payment_date=datetime.date(2024, 1, 20)),
            )
            return await app.orders.get_order(order.id)

        order = run_app(scenario)
        assert order.is_paid
        assert order.payment_date == datetime.date(2024, 1, 20)
        assert order.amount == Decimal("50")

    def test_update_missing_order(self, run_app):
        """Test actualizar un pedido inexistente."""
        async def scenario(app):
            await app.orders.update_order("no-existe", OrderUpdate(amount=Decimal("1")))

        with pytest.raises(NotFoundError):
            run_app(scenario)

    def test_delete_cascades_units(self, run_app, seed_pair, order_data):
        """Test eliminar un pedido elimina sus formatos y solo los suyos."""
        async def scenario(app):
            await seed_pair(app)
            keep = await app.orders.create_order(order_data(5))
            drop = await app.orders.create_order(order_data(8))
            removed = await app.orders.delete_order(drop.id)
            return keep, removed, await app.units.list_units(), await app.orders.get_order(drop.id)

        keep, removed, units, missing = run_app(scenario)
        assert removed == 8
        assert missing is None
        assert {u.order_id for u in units} == {keep.id}

    def test_list_filters_and_search(self, run_app, seed_pair, order_data):
        """Test filtros por empresa (contiene), estado y fechas; búsqueda libre."""
        async def scenario(app):
            await seed_pair(app, "Acme", "Invoice")
            await seed_pair(app, "Globex", "Receipt")
            await app.orders.create_order(order_data(5, order_date=datetime.date(2024, 1, 5)))
            await app.orders.create_order(
                order_data(
                    5,
                    company="Globex",
                    form_type="Receipt",
                    order_date=datetime.date(2024, 3, 1),
                    status=OrderStatus.PICKED_UP,
                    pickup_date=datetime.date(2024, 3, 2),
                    amount=Decimal("10"),
                )
            )
            return (
                await app.orders.list_orders(),
                await app.orders.list_orders(OrderFilter(company="glob")),
                await app.orders.list_orders(OrderFilter(status=OrderStatus.PENDING_PICKUP)),
                await app.orders.list_orders(OrderFilter(date_to=datetime.date(2024, 2, 1))),
                await app.orders.search_orders("receipt"),
            )

        all_orders, by_company, pending, before_feb, found = run_app(scenario)
        assert [o.company for o in all_orders] == ["Globex", "Acme"]
        assert [o.company for o in by_company] == ["Globex"]
        assert [o.company for o in pending] == ["Acme"]
        assert [o.company for o in before_feb] == ["Acme"]
        assert [o.form_type for o in found] == ["Receipt"]
