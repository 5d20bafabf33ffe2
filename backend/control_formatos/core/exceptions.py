"""
Excepciones de la aplicación.
Proyecto: Control de Formatos (SGV)

Define las excepciones específicas del dominio para un manejo
centralizado de los errores.

NOTA: BusinessValidationError es distinta de pydantic.ValidationError.
- pydantic.ValidationError: errores de formato/tipo en los datos de entrada
- BusinessValidationError: violaciones de reglas de negocio (por campo)
"""

from typing import Any, Dict, Optional

__all__ = [
    "AppException",
    "NotFoundError",
    "DuplicateError",
    "BusinessValidationError",
    "ValidationError",       # alias de BusinessValidationError
    "ConflictError",
    "StorageUnavailableError",
    "IntegrityViolationError",
]


class AppException(Exception):
    """
    Excepción base de la aplicación.

    Todas las excepciones propias heredan de esta clase.

    Attributes:
        error_code: Identificador único del error para la interfaz
        detail: Mensaje legible para el usuario
        extra: Diccionario con datos adicionales para la interfaz
    """

    error_code: str = "INTERNAL_ERROR"

    def __init__(
        self,
        detail: str,
        error_code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Inicializa la excepción.

        Args:
            detail: Mensaje de error detallado
            error_code: Identificador único (default: el de la clase)
            extra: Datos adicionales para la interfaz (default: None)
        """
        self.detail = detail
        self.error_code = error_code if error_code is not None else self.error_code
        self.extra = extra
        super().__init__(detail)


class NotFoundError(AppException):
    """
    Se lanza cuando un recurso requerido no existe.

    Solo se usa cuando el llamador exige la existencia; las búsquedas
    simples devuelven None.
    """

    error_code: str = "RESOURCE_NOT_FOUND"

    def __init__(
        self,
        detail: str = "Recurso no encontrado",
        error_code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(detail, error_code, extra)


class DuplicateError(AppException):
    """Se lanza al intentar crear un recurso duplicado (p. ej. empresa con el mismo nombre)."""

    error_code: str = "DUPLICATE_RESOURCE"

    def __init__(
        self,
        detail: str = "Recurso ya existente",
        error_code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(detail, error_code, extra)


class BusinessValidationError(ValueError, AppException):
    """
    Violación de una regla de negocio.

    Hereda de ValueError para poder usarse dentro de validadores Pydantic.
    Los mensajes por campo viajan en ``extra["fields"]``.

    Ejemplos:
        - "La cantidad debe ser mayor a 0"
        - "La fecha de recojo es requerida cuando el pedido está recogido"
        - "La fecha de pago es requerida cuando el pedido está pagado"
    """

    error_code: str = "BUSINESS_VALIDATION_ERROR"

    def __init__(
        self,
        detail: str = "Validación de datos fallida",
        error_code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        # Llama a AppException.__init__ directamente para evitar ValueError
        AppException.__init__(self, detail, error_code, extra)

    @classmethod
    def from_fields(cls, fields: Dict[str, str]) -> "BusinessValidationError":
        """Construye el error a partir de los mensajes por campo."""
        detail = "; ".join(f"{name}: {message}" for name, message in fields.items())
        return cls(detail, extra={"fields": dict(fields)})

    @property
    def fields(self) -> Dict[str, str]:
        """Mensajes por campo (vacío si el error no es de campo)."""
        return (self.extra or {}).get("fields", {})


# Alias por compatibilidad
ValidationError = BusinessValidationError


class ConflictError(AppException):
    """
    Conflicto de estado.

    La operación no puede ejecutarse por el estado actual del recurso
    (p. ej. ningún talonario seleccionado está disponible para envío).
    """

    error_code: str = "CONFLICT_STATE"

    def __init__(
        self,
        detail: str = "Conflicto de estado",
        error_code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(detail, error_code, extra)


class StorageUnavailableError(AppException):
    """
    El almacenamiento no es accesible.

    La operación se aborta sin mutaciones parciales; nunca se
    sustituye por un resultado vacío.
    """

    error_code: str = "STORAGE_UNAVAILABLE"

    def __init__(
        self,
        detail: str = "Almacenamiento no disponible",
        error_code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(detail, error_code, extra)


class IntegrityViolationError(AppException):
    """
    La operación rompería la unicidad o contigüidad de la numeración.

    Aborta la operación completa; nunca se omite el elemento conflictivo.
    """

    error_code: str = "INTEGRITY_VIOLATION"

    def __init__(
        self,
        detail: str = "Violación de integridad de la numeración",
        error_code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(detail, error_code, extra)
