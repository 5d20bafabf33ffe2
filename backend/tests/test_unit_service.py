"""
Tests de UnitService y de las métricas del dashboard.
"""

import datetime
from decimal import Decimal

from control_formatos.schemas import (
    OrderStatus,
    PaymentStatus,
    UnitFilter,
    UnitStatus,
    UnitUpdate,
)


class TestUnits:
    """Consulta y edición de formatos."""

    def test_update_location_and_state(self, run_app, seed_pair, order_data):
        """Test asignar un formato a un destinatario."""
        async def scenario(app):
            await seed_pair(app)
            await app.orders.create_order(order_data(5))
            unit = (await app.units.list_units(UnitFilter(number_from=3, number_to=3)))[0]
            return await app.units.update_unit(
                unit.id,
                UnitUpdate(
                    status=UnitStatus.ASSIGNED,
                    current_location="Oficina Lima",
                    destination="Sucursal Norte",
                    recipient="J. Pérez",
                    departure_date=datetime.date(2024, 2, 1),
                ),
            )

        unit = run_app(scenario)
        assert unit.number == 3
        assert unit.status == UnitStatus.ASSIGNED
        assert unit.current_location == "Oficina Lima"
        assert unit.recipient == "J. Pérez"

    def test_explicit_none_clears_optional_only(self, run_app, seed_pair, order_data):
        """Test None borra campos opcionales pero no la ubicación."""
        async def scenario(app):
            await seed_pair(app)
            await app.orders.create_order(order_data(1))
            unit = (await app.units.list_units())[0]
            await app.units.update_unit(unit.id, UnitUpdate(notes="revisar"))
            return await app.units.update_unit(unit.id, UnitUpdate(notes=None, current_location=None))

        unit = run_app(scenario)
        assert unit.notes is None
        assert unit.current_location == "Warehouse"

    def test_update_missing_returns_none(self, run_app):
        """Test formato inexistente."""
        async def scenario(app):
            return await app.units.update_unit("no-existe", UnitUpdate(notes="x"))

        assert run_app(scenario) is None

    def test_filters_and_counts(self, run_app, seed_pair, order_data):
        """Test filtro por estado y conteo por estado."""
        async def scenario(app):
            await seed_pair(app)
            await app.orders.create_order(order_data(10))
            units = await app.units.list_units()
            await app.units.update_unit(units[0].id, UnitUpdate(status=UnitStatus.DELIVERED))
            await app.units.update_unit(units[1].id, UnitUpdate(status=UnitStatus.ASSIGNED))
            delivered = await app.units.list_units(UnitFilter(status=UnitStatus.DELIVERED))
            return delivered, await app.units.count_by_state()

        delivered, counts = run_app(scenario)
        assert [u.number for u in delivered] == [1]
        assert counts == {UnitStatus.AVAILABLE: 8, UnitStatus.ASSIGNED: 1, UnitStatus.DELIVERED: 1}


class TestDashboard:
    """Métricas generales."""

    def test_metrics(self, run_app, seed_pair, order_data):
        """Test totales de pedidos, montos y formatos."""
        async def scenario(app):
            await seed_pair(app)
            await app.orders.create_order(order_data(10, amount=Decimal("100.00")))
            await app.orders.create_order(
                order_data(
                    5,
                    status=OrderStatus.PICKED_UP,
                    pickup_date=datetime.date(2024, 1, 12),
                    payment_status=PaymentStatus.PAID,
                    payment_date=datetime.date(2024, 1, 12),
                    amount=Decimal("40.50"),
                )
            )
            return await app.dashboard.get_metrics()

        metrics = run_app(scenario)
        assert metrics.total_orders == 2
        assert metrics.pending_orders == 1
        assert metrics.completed_orders == 1
        assert metrics.total_amount == Decimal("140.50")
        assert metrics.paid_amount == Decimal("40.50")
        assert metrics.unpaid_amount == Decimal("100.00")
        assert metrics.available_units == 15
        assert metrics.assigned_units == 0
