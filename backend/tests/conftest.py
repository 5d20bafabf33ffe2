"""
Configuración de pytest y fixtures comunes.

Los tests son síncronos: cada escenario async se ejecuta completo
dentro de un único ``asyncio.run`` (apertura del store, operaciones y
cierre), con cualquiera de los dos motores de almacenamiento.
"""

import asyncio
import datetime

import pytest

from control_formatos.core.config import Settings
from control_formatos.main import lifespan
from control_formatos.schemas import CompanyCreate, FormTypeCreate, OrderCreate


# ============================================================
# Settings
# ============================================================


@pytest.fixture
def memory_settings():
    """Store JSON sin persistencia en disco."""
    return Settings(app_env="testing", storage_backend="json", data_dir=None, log_level="WARNING")


@pytest.fixture
def sqlite_settings():
    """Base SQLite en memoria (aiosqlite)."""
    return Settings(
        app_env="testing",
        storage_backend="sqlite",
        database_url="sqlite+aiosqlite://",
        log_level="WARNING",
    )


@pytest.fixture(params=["json", "sqlite"])
def settings(request, memory_settings, sqlite_settings):
    """Parametriza los tests sobre ambos motores."""
    if request.param == "json":
        return memory_settings
    return sqlite_settings


# ============================================================
# Ejecución de escenarios
# ============================================================


@pytest.fixture
def run_app(settings):
    """
    Ejecuta ``scenario(app)`` dentro del ciclo de vida de la aplicación.

    Usage:
        async def scenario(app):
            ...
        result = run_app(scenario)
    """
    def runner(scenario):
        async def main():
            async with lifespan(settings) as app:
                return await scenario(app)
        return asyncio.run(main())
    return runner


# ============================================================
# Datos de prueba
# ============================================================


@pytest.fixture
def seed_pair():
    """Crea una empresa y un tipo de formato; devuelve ambos registros."""
    async def seed(app, company="Acme", form_type="Invoice"):
        existing = await app.companies.get_company_by_name(company)
        if existing is None:
            existing = await app.companies.create_company(CompanyCreate(name=company, tax_id="20123456789"))
        form = await app.form_types.create_form_type(FormTypeCreate(name=form_type, company_id=existing.id))
        return existing, form
    return seed


@pytest.fixture
def order_data():
    """Construye un OrderCreate con valores por defecto razonables."""
    def make(quantity, company="Acme", form_type="Invoice", **overrides):
        fields = {
            "order_date": datetime.date(2024, 1, 10),
            "company": company,
            "form_type": form_type,
            "quantity": quantity,
        }
        fields.update(overrides)
        return OrderCreate(**fields)
    return make
