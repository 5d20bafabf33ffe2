"""
Tests de talonarios: división pura de rangos y BatchService.
"""

import datetime

import pytest

from control_formatos.core.config import Settings
from control_formatos.core.exceptions import (
    BusinessValidationError,
    IntegrityViolationError,
    NotFoundError,
)
from control_formatos.schemas import BatchStatus, BatchUpdate, UnitRead, UnitStatus
from control_formatos.schemas.common import utcnow
from control_formatos.services.batch_service import BatchPartitioner, subtract, tile


def make_units(number_from, number_to, entry_date=datetime.date(2024, 1, 10)):
    now = utcnow()
    return [
        UnitRead(
            id=f"u{n}",
            number=n,
            order_id="o1",
            status=UnitStatus.AVAILABLE,
            current_location="Warehouse",
            entry_date=entry_date,
            created_at=now,
            updated_at=now,
        )
        for n in range(number_from, number_to + 1)
    ]


def ranges(batches):
    return [(b.number_from, b.number_to) for b in batches]


def dispatch_first(batches):
    first = batches[0].model_copy(update={
        "status": BatchStatus.DISPATCHED,
        "departure_date": datetime.date(2024, 1, 15),
        "destination": "Branch X",
    })
    return [first] + list(batches[1:])


@pytest.fixture
def partitioner():
    return BatchPartitioner(Settings(app_env="testing", default_batch_size=100))


# ============================================================
# Funciones de rangos
# ============================================================


class TestRangeHelpers:
    """tile y subtract."""

    def test_tile_last_batch_shorter(self):
        """Test el último talonario puede ser más corto."""
        assert tile(1, 80, 50) == [(1, 50), (51, 80)]

    def test_tile_count(self):
        """Test cantidad = ceil(hojas / tamaño)."""
        assert len(tile(1, 101, 25)) == 5

    def test_tile_invalid_size(self):
        """Test tamaño cero rechazado."""
        with pytest.raises(BusinessValidationError):
            tile(1, 10, 0)

    def test_subtract_taken_ranges(self):
        """Test tramos libres alrededor de rangos ocupados."""
        assert subtract(1, 100, [(1, 50), (71, 80)]) == [(51, 70), (81, 100)]
        assert subtract(51, 100, [(1, 50)]) == [(51, 100)]
        assert subtract(1, 50, [(1, 50)]) == []


# ============================================================
# División (partición)
# ============================================================


class TestPartition:
    """BatchPartitioner.partition."""

    def test_scenario_two_batches(self, partitioner):
        """Test formatos 1..80 en talonarios de 50: [1,50] y [51,80]."""
        result = partitioner.partition("Acme", "Invoice", make_units(1, 80), [], batch_size=50)

        assert ranges(result.batches) == [(1, 50), (51, 80)]
        assert [b.quantity for b in result.batches] == [50, 30]
        assert all(b.status == BatchStatus.AVAILABLE for b in result.batches)
        assert result.pending_new.count == 80

    def test_idempotent(self, partitioner):
        """Test partir el resultado de nuevo da los mismos rangos."""
        units = make_units(1, 230)
        first = partitioner.partition("Acme", "Invoice", units, [], batch_size=50)
        second = partitioner.partition("Acme", "Invoice", units, first.batches, batch_size=50)

        assert ranges(second.batches) == ranges(first.batches)
        assert [b.id for b in second.batches] == [b.id for b in first.batches]
        assert second.pending_new is None

    def test_idempotent_keeping_saved_tail(self, partitioner):
        """Test sin tamaño la cola guardada se conserva y es idempotente."""
        units = make_units(1, 80)
        first = partitioner.partition("Acme", "Invoice", units, [], new_batch_size=25)
        second = partitioner.partition("Acme", "Invoice", units, first.batches)

        assert ranges(first.batches) == [(1, 25), (26, 50), (51, 75), (76, 80)]
        assert ranges(second.batches) == ranges(first.batches)

    def test_dispatched_never_retiled(self, partitioner):
        """Test un talonario enviado conserva rango y estado con cualquier tamaño."""
        first = partitioner.partition("Acme", "Invoice", make_units(1, 80), [], batch_size=50)
        saved = dispatch_first(first.batches)

        for size in (10, 50, 100):
            result = partitioner.partition("Acme", "Invoice", make_units(1, 120), saved, batch_size=size)
            sent = [b for b in result.batches if b.status == BatchStatus.DISPATCHED]
            assert ranges(sent) == [(1, 50)]
            assert sent[0].destination == "Branch X"
            assert all(b.number_from > 50 for b in result.batches if b is not sent[0])

    def test_scenario_extension_after_dispatch(self, partitioner):
        """Test tras enviar [1,50] y emitir 81..100 se obtiene [51,100]."""
        first = partitioner.partition("Acme", "Invoice", make_units(1, 80), [], batch_size=50)
        saved = dispatch_first(first.batches)

        result = partitioner.partition("Acme", "Invoice", make_units(1, 100), saved, batch_size=50)

        assert ranges(result.batches) == [(1, 50), (51, 100)]
        assert result.batches[0].status == BatchStatus.DISPATCHED
        assert result.batches[1].status == BatchStatus.AVAILABLE
        assert result.batches[1].quantity == 50
        assert (result.pending_new.number_from, result.pending_new.number_to) == (81, 100)
        assert result.pending_new.count == 20

    def test_new_increment_with_own_size(self, partitioner):
        """Test el incremento nuevo usa su propio tamaño y la cola el suyo."""
        first = partitioner.partition("Acme", "Invoice", make_units(1, 80), [], batch_size=50)

        result = partitioner.partition(
            "Acme", "Invoice", make_units(1, 100), first.batches, batch_size=50, new_batch_size=10
        )

        assert ranges(result.batches) == [(1, 50), (51, 80), (81, 90), (91, 100)]

    def test_keep_mode_appends_increment(self, partitioner):
        """Test sin tamaño solo se agregan talonarios para los números nuevos."""
        first = partitioner.partition("Acme", "Invoice", make_units(1, 80), [], batch_size=50)

        result = partitioner.partition("Acme", "Invoice", make_units(1, 100), first.batches, new_batch_size=20)

        assert ranges(result.batches) == [(1, 50), (51, 80), (81, 100)]
        assert [b.id for b in result.batches[:2]] == [b.id for b in first.batches]

    def test_saved_tail_trimmed_to_existing_units(self, partitioner):
        """Test talonarios guardados sin formatos detrás se recortan o descartan."""
        first = partitioner.partition("Acme", "Invoice", make_units(1, 80), [], batch_size=50)
        saved = dispatch_first(first.batches)

        result = partitioner.partition("Acme", "Invoice", make_units(1, 50), saved)

        assert ranges(result.batches) == [(1, 50)]
        assert result.pending_new is None

    def test_no_units_keeps_only_dispatched(self, partitioner):
        """Test sin formatos disponibles solo quedan los enviados."""
        first = partitioner.partition("Acme", "Invoice", make_units(1, 80), [], batch_size=50)
        saved = dispatch_first(first.batches)

        result = partitioner.partition("Acme", "Invoice", [], saved, batch_size=50)

        assert ranges(result.batches) == [(1, 50)]
        assert result.dispatched_count == 1
        assert result.available_count == 0

    def test_entry_date_per_sub_range(self, partitioner):
        """Test cada talonario toma la fecha del primer formato de su rango."""
        units = make_units(1, 50, datetime.date(2024, 1, 1)) + make_units(51, 100, datetime.date(2024, 2, 1))

        result = partitioner.partition("Acme", "Invoice", units, [], batch_size=50)

        assert [b.entry_date for b in result.batches] == [datetime.date(2024, 1, 1), datetime.date(2024, 2, 1)]
        assert {b.storage_location for b in result.batches} == {"Warehouse"}


class TestResize:
    """BatchPartitioner.resize."""

    def test_resize_selected_subset(self, partitioner):
        """Test solo los seleccionados se vuelven a dividir."""
        batches = partitioner.partition("Acme", "Invoice", make_units(1, 300), [], batch_size=100).batches

        result = partitioner.resize(batches, [batches[1].id], 25)

        assert ranges(result) == [(1, 100), (101, 125), (126, 150), (151, 175), (176, 200), (201, 300)]
        assert result[0].id == batches[0].id
        assert result[-1].id == batches[2].id
        assert result[1].notes == "Redimensionado: 25 hojas por talonario"

    def test_resize_merges_contiguous_selection(self, partitioner):
        """Test dos talonarios contiguos se unen con un tamaño mayor."""
        batches = partitioner.partition("Acme", "Invoice", make_units(1, 100), [], batch_size=50).batches

        result = partitioner.resize(batches, [b.id for b in batches], 100)

        assert ranges(result) == [(1, 100)]

    def test_resize_non_contiguous_rejected(self, partitioner):
        """Test selección con huecos rechazada."""
        batches = partitioner.partition("Acme", "Invoice", make_units(1, 150), [], batch_size=50).batches

        with pytest.raises(IntegrityViolationError):
            partitioner.resize(batches, [batches[0].id, batches[2].id], 10)

    def test_resize_dispatched_rejected(self, partitioner):
        """Test un talonario enviado no se redimensiona."""
        batches = dispatch_first(partitioner.partition("Acme", "Invoice", make_units(1, 100), [], batch_size=50).batches)

        with pytest.raises(BusinessValidationError):
            partitioner.resize(batches, [batches[0].id], 10)


# ============================================================
# BatchService (con almacenamiento)
# ============================================================


class TestBatchService:
    """Preparación, guardado y edición de talonarios guardados."""

    def test_scenarios_prepare_save_dispatch_extend(self, run_app, seed_pair, order_data):
        """Test flujo completo: 1..80 en 50, envío de [1,50], extensión a 100."""
        async def scenario(app):
            await seed_pair(app)
            await app.orders.create_order(order_data(50))
            await app.orders.create_order(order_data(30))

            first = await app.batches.prepare("Acme", "Invoice", batch_size=50)
            saved = await app.batches.save_batches("Acme", "Invoice", first.batches)
            await app.dispatch.dispatch([saved[0].id], datetime.date(2024, 1, 15), "Branch X")

            await app.orders.create_order(order_data(20))
            extended = await app.batches.prepare("Acme", "Invoice", batch_size=50)
            return first, extended

        first, extended = run_app(scenario)
        assert ranges(first.batches) == [(1, 50), (51, 80)]
        assert ranges(extended.batches) == [(1, 50), (51, 100)]
        assert extended.batches[0].status == BatchStatus.DISPATCHED
        assert extended.batches[0].departure_date == datetime.date(2024, 1, 15)
        assert extended.pending_new.count == 20

    def test_save_rejects_overlap(self, run_app, seed_pair, order_data):
        """Test rangos superpuestos no se guardan."""
        async def scenario(app):
            await seed_pair(app)
            await app.orders.create_order(order_data(100))
            batches = (await app.batches.prepare("Acme", "Invoice", batch_size=50)).batches
            overlapping = batches[1].model_copy(update={"number_from": 40, "quantity": 61})
            await app.batches.save_batches("Acme", "Invoice", [batches[0], overlapping])

        with pytest.raises(IntegrityViolationError):
            run_app(scenario)

    def test_save_rejects_changed_dispatched_range(self, run_app, seed_pair, order_data):
        """Test no se puede guardar un conjunto que altera un talonario enviado."""
        async def scenario(app):
            await seed_pair(app)
            await app.orders.create_order(order_data(100))
            batches = await app.batches.save_batches(
                "Acme", "Invoice", (await app.batches.prepare("Acme", "Invoice", batch_size=50)).batches
            )
            await app.dispatch.dispatch([batches[0].id], datetime.date(2024, 1, 15), "Branch X")
            retiled = (await app.batches.prepare("Acme", "Invoice", batch_size=50)).batches
            shrunk = retiled[0].model_copy(update={"number_to": 40, "quantity": 40})
            await app.batches.save_batches("Acme", "Invoice", [shrunk] + retiled[1:])

        with pytest.raises(IntegrityViolationError):
            run_app(scenario)

    def test_save_rejects_other_pair(self, run_app, seed_pair, order_data):
        """Test un talonario de otro par no se guarda."""
        async def scenario(app):
            await seed_pair(app)
            await app.orders.create_order(order_data(10))
            batches = (await app.batches.prepare("Acme", "Invoice", batch_size=50)).batches
            await app.batches.save_batches("Acme", "Receipt", batches)

        with pytest.raises(BusinessValidationError):
            run_app(scenario)

    def test_resize_saves_result(self, run_app, seed_pair, order_data):
        """Test redimensionar guarda el conjunto resultante."""
        async def scenario(app):
            await seed_pair(app)
            await app.orders.create_order(order_data(100))
            saved = await app.batches.save_batches(
                "Acme", "Invoice", (await app.batches.prepare("Acme", "Invoice", batch_size=50)).batches
            )
            await app.batches.resize("Acme", "Invoice", [saved[1].id], 10)
            return await app.batches.load_batches("Acme", "Invoice")

        loaded = run_app(scenario)
        assert ranges(loaded) == [(1, 50), (51, 60), (61, 70), (71, 80), (81, 90), (91, 100)]

    def test_resize_unknown_id(self, run_app, seed_pair, order_data):
        """Test ids que no son del par."""
        async def scenario(app):
            await seed_pair(app)
            await app.orders.create_order(order_data(10))
            await app.batches.resize("Acme", "Invoice", ["no-existe"], 5)

        with pytest.raises(NotFoundError):
            run_app(scenario)

    def test_update_batch_toggles_status(self, run_app, seed_pair, order_data):
        """Test fecha de salida marca enviado; borrarla devuelve a disponible sin destino."""
        async def scenario(app):
            await seed_pair(app)
            await app.orders.create_order(order_data(10))
            saved = await app.batches.save_batches(
                "Acme", "Invoice", (await app.batches.prepare("Acme", "Invoice", batch_size=50)).batches
            )
            sent = await app.batches.update_batch(
                saved[0].id, BatchUpdate(departure_date=datetime.date(2024, 3, 1), destination="Lima")
            )
            back = await app.batches.update_batch(saved[0].id, BatchUpdate(departure_date=None))
            missing = await app.batches.update_batch("no-existe", BatchUpdate(notes="x"))
            return sent, back, missing

        sent, back, missing = run_app(scenario)
        assert sent.status == BatchStatus.DISPATCHED
        assert back.status == BatchStatus.AVAILABLE
        assert back.departure_date is None
        assert back.destination is None
        assert missing is None

    def test_select_and_filter(self, run_app, seed_pair, order_data):
        """Test selección de los primeros disponibles y filtro por mes."""
        async def scenario(app):
            await seed_pair(app)
            await app.orders.create_order(order_data(200))
            saved = await app.batches.save_batches(
                "Acme", "Invoice", (await app.batches.prepare("Acme", "Invoice", batch_size=50)).batches
            )
            await app.dispatch.dispatch([saved[0].id], datetime.date(2024, 3, 5), "Lima")
            await app.dispatch.dispatch([saved[1].id], datetime.date(2024, 4, 5), "Cusco")
            first_two = await app.batches.select_first_available("Acme", "Invoice", 2)
            march = await app.batches.filter_batches("Acme", "Invoice", month="2024-03")
            available = await app.batches.filter_batches("Acme", "Invoice", status=BatchStatus.AVAILABLE)
            return saved, first_two, march, available

        saved, first_two, march, available = run_app(scenario)
        assert first_two == [saved[2].id, saved[3].id]
        assert [b.destination for b in march] == ["Lima"]
        assert ranges(available) == [(101, 150), (151, 200)]

    def test_select_more_than_available(self, run_app, seed_pair, order_data):
        """Test pedir más talonarios de los disponibles."""
        async def scenario(app):
            await seed_pair(app)
            await app.orders.create_order(order_data(60))
            await app.batches.save_batches(
                "Acme", "Invoice", (await app.batches.prepare("Acme", "Invoice", batch_size=50)).batches
            )
            await app.batches.select_first_available("Acme", "Invoice", 3)

        with pytest.raises(BusinessValidationError):
            run_app(scenario)

    def test_invalid_month(self, run_app):
        """Test mes con formato inválido."""
        async def scenario(app):
            await app.batches.filter_batches("Acme", "Invoice", month="03/2024")

        with pytest.raises(BusinessValidationError):
            run_app(scenario)

    def test_batch_groups_and_reset(self, run_app, seed_pair, order_data):
        """Test resumen por formato y reinicio de talonarios guardados."""
        async def scenario(app):
            await seed_pair(app, "Acme", "Invoice")
            await seed_pair(app, "Acme", "Receipt")
            await app.orders.create_order(
                order_data(
                    30,
                    status="picked_up",
                    pickup_date=datetime.date(2024, 1, 20),
                    amount="15.50",
                )
            )
            await app.orders.create_order(order_data(5, form_type="Receipt"))
            await app.batches.save_batches(
                "Acme", "Invoice", (await app.batches.prepare("Acme", "Invoice", batch_size=50)).batches
            )
            groups = await app.batches.list_batch_groups("Acme")
            removed = await app.batches.reset_batches("Acme")
            return groups, removed, await app.batches.load_batches("Acme", "Invoice")

        groups, removed, remaining = run_app(scenario)
        assert [(g.form_type, g.unit_count, g.number_min, g.number_max) for g in groups] == [
            ("Invoice", 30, 1, 30),
            ("Receipt", 5, 1, 5),
        ]
        assert groups[0].latest_pickup_date == datetime.date(2024, 1, 20)
        assert groups[1].latest_pickup_date is None
        assert removed == 1
        assert remaining == []
