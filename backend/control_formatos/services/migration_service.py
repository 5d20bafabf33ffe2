"""
Migración entre motores de almacenamiento
Proyecto: Control de Formatos (SGV)

Copia todos los datos de un store a otro (p. ej. de los archivos JSON a
la base SQLite) conservando los ids.
"""

import logging
from dataclasses import dataclass

from control_formatos.storage.base import Store

# Logger para este módulo
logger = logging.getLogger(__name__)


@dataclass
class MigrationReport:
    """Registros copiados por colección."""

    migrated: bool = False
    companies: int = 0
    form_types: int = 0
    orders: int = 0
    units: int = 0
    batches: int = 0
    reserved_numbers: int = 0


class MigrationService:
    """Copia completa de un store a otro."""

    async def migrate(self, source: Store, target: Store) -> MigrationReport:
        """
        Copia empresas, formatos, pedidos, formatos numerados, talonarios
        y números reservados de ``source`` a ``target``.

        Se omite si el destino ya tiene pedidos. La escritura en el
        destino es una sola unidad de trabajo: o se copia todo o nada.

        Args:
            source: Store de origen (abierto)
            target: Store de destino (abierto)

        Returns:
            MigrationReport: Cantidades copiadas
        """
        async with source.unit_of_work() as uow:
            companies = await uow.companies.list()
            form_types = await uow.form_types.list()
            orders = await uow.orders.list()
            units = await uow.units.list()
            batches = await uow.batches.list()
            reserved = await uow.reserved_numbers.all()

        report = MigrationReport()

        async with target.unit_of_work() as uow:
            if await uow.orders.list():
                logger.info("Migración omitida: el destino (%s) ya tiene pedidos", target.backend)
                return report

            await uow.companies.add_many(companies)
            await uow.form_types.add_many(form_types)
            await uow.orders.add_many(orders)
            await uow.units.add_many(units)
            await uow.batches.add_many(batches)
            for entry in reserved:
                await uow.reserved_numbers.add(entry.company, entry.form_type, entry.number)

        report.migrated = True
        report.companies = len(companies)
        report.form_types = len(form_types)
        report.orders = len(orders)
        report.units = len(units)
        report.batches = len(batches)
        report.reserved_numbers = len(reserved)

        logger.info(
            "Migración %s -> %s completada: %s empresas, %s formatos, %s pedidos, %s formatos numerados, %s talonarios",
            source.backend, target.backend, report.companies, report.form_types,
            report.orders, report.units, report.batches,
        )
        return report
