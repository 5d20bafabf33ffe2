"""
Schemas Pydantic para Empresas y Tipos de Formato
Proyecto: Control de Formatos (SGV)

Contiene los schemas de validación y serialización de la
configuración: empresas clientes y los tipos de formato que imprimen.
"""

import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ------------------------------------------------------------
# Schemas Company
# ------------------------------------------------------------

class CompanyBase(BaseModel):
    """Campos editables comunes a creación y lectura de una empresa."""
    name: str = Field(..., min_length=1, max_length=200, description="Razón social")
    tax_id: Optional[str] = Field(None, max_length=20, description="RUC")
    address: Optional[str] = Field(None, max_length=255, description="Dirección")
    phone: Optional[str] = Field(None, max_length=50, description="Teléfono")
    email: Optional[str] = Field(None, max_length=255, description="Correo electrónico")
    contact: Optional[str] = Field(None, max_length=200, description="Persona de contacto")
    is_active: bool = Field(default=True, description="Empresa activa")

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, v: Optional[str]) -> Optional[str]:
        """Elimina espacios al inicio y al final del nombre."""
        return v.strip() if isinstance(v, str) else v

    @field_validator("tax_id")
    @classmethod
    def validate_tax_id(cls, v: Optional[str]) -> Optional[str]:
        """El RUC, si se indica, solo contiene dígitos."""
        if v is None or not v.strip():
            return None
        v = v.strip()
        if not v.isdigit():
            raise ValueError("El RUC debe contener solo dígitos")
        return v


class CompanyCreate(CompanyBase):
    pass


class CompanyUpdate(BaseModel):
    """Actualización parcial de una empresa."""
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    tax_id: Optional[str] = Field(None, max_length=20)
    address: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=50)
    email: Optional[str] = Field(None, max_length=255)
    contact: Optional[str] = Field(None, max_length=200)
    is_active: Optional[bool] = None

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, v: Optional[str]) -> Optional[str]:
        """Elimina espacios al inicio y al final del nombre."""
        return v.strip() if isinstance(v, str) else v


class CompanyRead(CompanyBase):
    model_config = ConfigDict(from_attributes=True)

    id: str
    created_at: datetime.datetime
    updated_at: datetime.datetime


# ------------------------------------------------------------
# Schemas FormType
# ------------------------------------------------------------

class FormTypeBase(BaseModel):
    """
    Schema base para los tipos de formato.

    El nombre solo tiene sentido dentro de su empresa: el par
    (empresa, nombre) es la clave de numeración de los pedidos.
    """
    name: str = Field(..., min_length=1, max_length=200, description="Nombre del formato")
    description: Optional[str] = Field(None, description="Descripción")
    company_id: str = Field(..., min_length=1, description="Id de la empresa propietaria")
    image: Optional[str] = Field(None, description="Referencia a la imagen de muestra")
    is_active: bool = Field(default=True, description="Formato activo")

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, v: Optional[str]) -> Optional[str]:
        """Elimina espacios al inicio y al final del nombre."""
        return v.strip() if isinstance(v, str) else v


class FormTypeCreate(FormTypeBase):
    pass


class FormTypeUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    image: Optional[str] = None
    is_active: Optional[bool] = None

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, v: Optional[str]) -> Optional[str]:
        """Elimina espacios al inicio y al final del nombre."""
        return v.strip() if isinstance(v, str) else v


class FormTypeRead(FormTypeBase):
    model_config = ConfigDict(from_attributes=True)

    id: str
    created_at: datetime.datetime
    updated_at: datetime.datetime
