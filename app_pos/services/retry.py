# ==============================================================================
# REINTENTO DE LECTURAS
# ==============================================================================
# Solo para lecturas (listas de ventas, catálogo). Las escrituras NO se
# reintentan en esta capa.
#
#   espera(intento) = base * 2^intento + jitter aleatorio
#
# 401/403 nunca se reintentan: son fallas de autenticación, no transitorias.
# ==============================================================================

import asyncio
import logging
import random
from typing import Any, Awaitable, Callable, Dict, Optional

from app_pos import config
from app_pos.exceptions import ApiError
from app_pos.repositories.interfaces import IApiClient

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[Any]]


def backoff_delay_ms(attempt: int, base_delay_ms: int = config.READ_BASE_DELAY_MS,
                     jitter_ms: int = config.READ_JITTER_MS) -> float:
    """Espera en ms antes del reintento número `attempt` (0 = primero)."""
    return base_delay_ms * (2 ** attempt) + random.uniform(0, jitter_ms)


async def get_with_retry(
    api: IApiClient,
    path: str,
    request_config: Optional[Dict[str, Any]] = None,
    max_retries: int = config.READ_MAX_RETRIES,
    base_delay_ms: int = config.READ_BASE_DELAY_MS,
    jitter_ms: int = config.READ_JITTER_MS,
    sleep: Sleep = asyncio.sleep
) -> Any:
    """
    GET con reintentos acotados.

    Args:
        api: Cliente HTTP
        path: Ruta relativa
        request_config: Config del cliente (headers, suppress_global_error)
        max_retries: Reintentos además del primer intento
        base_delay_ms: Espera base
        jitter_ms: Jitter máximo
        sleep: Función de espera (inyectable en tests)

    Returns:
        Datos de la respuesta

    Raises:
        ApiError: El último error si se agotan los reintentos, o de
            inmediato si es 401/403
    """
    attempt = 0
    while True:
        try:
            return await api.get(path, request_config)
        except ApiError as e:
            if e.is_auth_error or attempt >= max_retries:
                raise
            delay = backoff_delay_ms(attempt, base_delay_ms, jitter_ms)
            logger.info("[API] GET %s falló (%s), reintento %d en %.0f ms",
                        path, e.status, attempt + 1, delay)
            await sleep(delay / 1000)
            attempt += 1
