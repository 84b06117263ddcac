# ==============================================================================
# EXCEPCIONES DEL MOTOR DE VENTAS
# ==============================================================================
# Taxonomía de errores:
#   Validación      → mapa {campo: mensaje}, nunca llega a la red
#   NetworkError    → transitorio (sin conexión o 5xx)
#   AuthError       → 401, fuerza logout, nunca se reintenta
#   ForbiddenError  → 403, tampoco se reintenta
#   ConflictError   → 409, venta duplicada
# ==============================================================================

from typing import Optional


class PosError(Exception):
    """Error base del motor de ventas."""
    pass


class ApiError(PosError):
    """
    Error devuelto por el cliente HTTP.

    Attributes:
        status: Código HTTP (None si no hubo respuesta)
        message: Mensaje legible
        data: Cuerpo de la respuesta si existe
    """

    def __init__(self, message: str, status: Optional[int] = None, data=None):
        super().__init__(message)
        self.status = status
        self.message = message
        self.data = data

    @property
    def is_auth_error(self) -> bool:
        return self.status in (401, 403)

    @property
    def is_transient(self) -> bool:
        return self.status is None or self.status >= 500


class NetworkError(ApiError):
    """Sin conexión o error 5xx."""
    pass


class AuthError(ApiError):
    """Sesión expirada o token inválido (401)."""
    pass


class ForbiddenError(ApiError):
    """Usuario sin permisos (403)."""
    pass


class ConflictError(ApiError):
    """Operación duplicada (409)."""
    pass


def error_for_status(status: Optional[int], message: str, data=None) -> ApiError:
    """
    Construye la excepción adecuada para un código HTTP.

    Args:
        status: Código HTTP o None
        message: Mensaje del error
        data: Cuerpo de la respuesta

    Returns:
        Instancia de ApiError (o subclase)
    """
    if status is None or status >= 500:
        return NetworkError(message, status, data)
    if status == 401:
        return AuthError(message, status, data)
    if status == 403:
        return ForbiddenError(message, status, data)
    if status == 409:
        return ConflictError(message, status, data)
    return ApiError(message, status, data)
