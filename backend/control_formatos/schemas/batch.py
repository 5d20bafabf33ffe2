"""
Schemas Pydantic para Talonarios
Proyecto: Control de Formatos (SGV)

Un talonario agrupa un rango contiguo de formatos de un par
(empresa, tipo de formato) para su almacenamiento y envío físico.
"""

import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator


class BatchStatus(str, Enum):
    """Estados de un talonario."""
    AVAILABLE = "available"
    DISPATCHED = "dispatched"


class BatchRead(BaseModel):
    """
    Talonario guardado o propuesto.

    Invariante: ``quantity == number_to - number_from + 1``.
    """
    model_config = ConfigDict(from_attributes=True)

    id: str
    form_type: str
    company: str
    number_from: int = Field(..., ge=1)
    number_to: int = Field(..., ge=1)
    quantity: int
    entry_date: datetime.date
    storage_location: str
    status: BatchStatus = BatchStatus.AVAILABLE
    departure_date: Optional[datetime.date] = None
    destination: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime.datetime
    updated_at: datetime.datetime

    @model_validator(mode="after")
    def validate_range(self) -> "BatchRead":
        """Valida la coherencia del rango y la cantidad."""
        if self.number_to < self.number_from:
            raise ValueError(
                f"Rango inválido: {self.number_from}-{self.number_to}"
            )
        if self.quantity != self.number_to - self.number_from + 1:
            raise ValueError(
                f"La cantidad {self.quantity} no coincide con el rango "
                f"{self.number_from}-{self.number_to}"
            )
        return self

    @property
    def is_dispatched(self) -> bool:
        return self.status == BatchStatus.DISPATCHED

    @property
    def number_range(self) -> tuple[int, int]:
        return self.number_from, self.number_to


class BatchUpdate(BaseModel):
    """
    Edición de un talonario.

    Asignar ``departure_date`` lo marca como enviado; borrarla (None)
    lo devuelve a disponible y borra el destino.
    """
    storage_location: Optional[str] = Field(None, min_length=1, max_length=200)
    entry_date: Optional[datetime.date] = None
    departure_date: Optional[datetime.date] = None
    destination: Optional[str] = Field(None, max_length=200)
    notes: Optional[str] = None


class PendingIncrement(BaseModel):
    """
    Números materializados después del último guardado.

    Se ofrecen al llamador para que elija el tamaño de talonario
    solo para este incremento.
    """
    count: int
    number_from: int
    number_to: int


class PartitionResult(BaseModel):
    """Resultado de una pasada de partición (aún no guardado)."""
    batches: list[BatchRead] = Field(default_factory=list)
    pending_new: Optional[PendingIncrement] = None

    @computed_field
    @property
    def dispatched_count(self) -> int:
        return sum(1 for b in self.batches if b.status == BatchStatus.DISPATCHED)

    @computed_field
    @property
    def available_count(self) -> int:
        return sum(1 for b in self.batches if b.status == BatchStatus.AVAILABLE)


class BatchGroup(BaseModel):
    """Resumen de formatos disponibles de un par (empresa, formato) para armar talonarios."""
    company: str
    form_type: str
    unit_count: int
    number_min: int
    number_max: int
    latest_pickup_date: Optional[datetime.date] = None

    @computed_field
    @property
    def span(self) -> int:
        """Hojas del rango completo, incluidos huecos."""
        return self.number_max - self.number_min + 1


class ReservedNumberRead(BaseModel):
    """Número reservado pero no usado de un par (empresa, formato)."""
    model_config = ConfigDict(from_attributes=True)

    company: str
    form_type: str
    number: int = Field(..., ge=1)
