import asyncio

from control_formatos.core.config import get_settings
from control_formatos.core.database import build_engine, close_db, reset_db
from control_formatos.core.logging import configure_logging


async def reset():
    settings = get_settings()
    configure_logging(settings)
    print(f"Conexión a {settings.database_url}, eliminación de tablas...")
    engine = build_engine(settings)
    try:
        await reset_db(engine)
    finally:
        await close_db(engine)
    print("Base de datos reiniciada correctamente.")


if __name__ == "__main__":
    asyncio.run(reset())
