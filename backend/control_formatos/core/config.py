"""
Configuración de la aplicación - Settings
Proyecto: Control de Formatos (SGV)

Define los parámetros de la aplicación cargados desde variables de entorno.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Configuración de la aplicación.

    Carga los parámetros desde variables de entorno (prefijo ``CF_``).
    Los valores por defecto son adecuados para uso local.

    Para obtener la instancia compartida usar ``get_settings()``; en tests
    se puede construir ``Settings(...)`` directamente.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="CF_",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    # ------------------------------------------------------------
    # Aplicación
    # ------------------------------------------------------------
    app_name: str = Field(
        default="Control de Formatos",
        description="Nombre de la aplicación",
    )

    app_version: str = Field(
        default="1.0.0",
        description="Versión de la aplicación",
    )

    app_env: Literal["development", "production", "testing"] = Field(
        default="development",
        description="Entorno de ejecución (development | production | testing)",
    )

    debug: bool = Field(
        default=False,
        description="Modo debug (activa el eco de SQL)",
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Nivel de logging",
    )

    # ------------------------------------------------------------
    # Almacenamiento
    # ------------------------------------------------------------
    storage_backend: Literal["sqlite", "json"] = Field(
        default="sqlite",
        description="Motor de almacenamiento: base embebida o archivos JSON",
    )

    database_url: str = Field(
        default="sqlite+aiosqlite:///./data/control_formatos.db",
        description="URL de conexión SQLAlchemy (formato async)",
    )

    data_dir: Optional[str] = Field(
        default="./data",
        description="Carpeta de los archivos JSON; None mantiene el store solo en memoria",
    )

    # ------------------------------------------------------------
    # Formatos y talonarios
    # ------------------------------------------------------------
    default_location: str = Field(
        default="Warehouse",
        description="Ubicación inicial de formatos y talonarios",
    )

    default_batch_size: int = Field(
        default=100,
        description="Hojas por talonario cuando no se indica otro tamaño",
    )

    allowed_batch_sizes: list[int] = Field(
        default_factory=lambda: [50, 100],
        description="Tamaños de talonario ofrecidos por la interfaz",
    )

    @property
    def is_production(self) -> bool:
        """Indica si la aplicación corre en producción."""
        return self.app_env == "production"

    @property
    def is_memory_database(self) -> bool:
        """True si la base SQLite vive solo en memoria."""
        return ":memory:" in self.database_url or self.database_url.endswith("sqlite+aiosqlite://")

    # ------------------------------------------------------------
    # Validadores
    # ------------------------------------------------------------

    @field_validator("default_batch_size")
    @classmethod
    def validate_default_batch_size(cls, v: int) -> int:
        """El tamaño de talonario debe ser positivo."""
        if v <= 0:
            raise ValueError("El tamaño de talonario debe ser mayor a 0")
        return v

    @field_validator("allowed_batch_sizes")
    @classmethod
    def validate_allowed_batch_sizes(cls, v: list[int]) -> list[int]:
        """Ordena y valida los tamaños ofrecidos."""
        if any(size <= 0 for size in v):
            raise ValueError("Los tamaños de talonario deben ser mayores a 0")
        return sorted(set(v))

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        """Emite un warning si la URL no usa un driver async."""
        if v.startswith("sqlite://"):
            logging.getLogger(__name__).warning(
                "database_url sin driver async: %s. Usar sqlite+aiosqlite://", v
            )
        return v

    @model_validator(mode="after")
    def validate_production_settings(self) -> "Settings":
        """Validación de los parámetros obligatorios en producción."""
        if self.app_env != "production":
            return self

        errors = []

        if self.debug:
            errors.append("- debug: debe ser False en producción")

        if self.storage_backend == "json" and not self.data_dir:
            errors.append("- data_dir: obligatorio con storage_backend=json en producción")

        if self.storage_backend == "sqlite" and self.is_memory_database:
            errors.append("- database_url: no puede ser una base en memoria en producción")

        if errors:
            error_msg = "Error de configuración en producción:\n" + "\n".join(errors)
            raise ValueError(error_msg)

        return self


@lru_cache()
def get_settings() -> Settings:
    """
    Devuelve la instancia compartida de la configuración.

    Usa lru_cache para que Settings() se construya una sola vez.
    En tests usar get_settings.cache_clear() para reiniciarla.

    Returns:
        Settings: Configuración de la aplicación
    """
    return Settings()
