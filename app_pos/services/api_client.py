# ==============================================================================
# CLIENTE HTTP DEL BACKEND
# ==============================================================================
# Implementación de IApiClient sobre requests.
#
# - Las llamadas bloqueantes corren en un hilo (asyncio.to_thread) para no
#   congelar la caja mientras hay una venta en vuelo.
# - Los reintentos de transporte (conexión caída) los hace urllib3 por
#   debajo; por eso las ventas con guía viajan con Idempotency-Key.
# - Los códigos HTTP de error se convierten en ApiError y subclases.
# ==============================================================================

import asyncio
import logging
from typing import Any, Dict, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from app_pos import config
from app_pos.exceptions import ApiError, error_for_status

logger = logging.getLogger(__name__)


def _error_message(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason or 'Error del servidor'
    if isinstance(body, dict):
        return body.get('message') or body.get('error') or response.reason or 'Error del servidor'
    return response.reason or 'Error del servidor'


class RequestsApiClient:
    """
    Cliente REST asíncrono.

    Uso:
        api = RequestsApiClient(config.API_BASE_URL, token=session.token)
        products = await api.get('/products')
    """

    def __init__(
        self,
        base_url: str = config.API_BASE_URL,
        token: Optional[str] = None,
        timeout: float = config.API_TIMEOUT,
        transport_retries: int = config.API_TRANSPORT_RETRIES,
        session: Optional[requests.Session] = None
    ):
        self.base_url = base_url.rstrip('/')
        self.token = token
        self.timeout = timeout
        self.session = session or requests.Session()

        # Reintenta solo fallas de conexión, nunca respuestas del servidor
        retry = Retry(
            total=transport_retries,
            connect=transport_retries,
            read=0,
            status=0,
            allowed_methods=None,
            backoff_factor=0.3,
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry)
        self.session.mount('http://', adapter)
        self.session.mount('https://', adapter)

    def set_token(self, token: Optional[str]) -> None:
        self.token = token

    def _headers(self, request_config: Optional[Dict[str, Any]]) -> Dict[str, str]:
        headers = {'Accept': 'application/json'}
        if self.token:
            headers['Authorization'] = f'Bearer {self.token}'
        if request_config and request_config.get('headers'):
            headers.update(request_config['headers'])
        return headers

    def _request(
        self,
        method: str,
        path: str,
        body: Any = None,
        request_config: Optional[Dict[str, Any]] = None
    ) -> Any:
        url = f"{self.base_url}/{path.lstrip('/')}"
        suppress = bool(request_config and request_config.get('suppress_global_error'))
        try:
            response = self.session.request(
                method,
                url,
                json=body,
                headers=self._headers(request_config),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            if not suppress:
                logger.error("[API] %s %s sin respuesta: %s", method, path, e)
            raise error_for_status(None, 'No se pudo conectar con el servidor') from e

        if response.status_code >= 400:
            message = _error_message(response)
            if not suppress:
                logger.error("[API] %s %s → %d: %s", method, path, response.status_code, message)
            try:
                data = response.json()
            except ValueError:
                data = None
            raise error_for_status(response.status_code, message, data)

        if not response.content:
            return None
        try:
            payload = response.json()
        except ValueError as e:
            raise ApiError('Respuesta inválida del servidor', response.status_code) from e
        if isinstance(payload, dict) and 'data' in payload:
            return payload['data']
        return payload

    async def get(self, path: str, config: Optional[Dict[str, Any]] = None) -> Any:
        return await asyncio.to_thread(self._request, 'GET', path, None, config)

    async def post(self, path: str, body: Any = None, config: Optional[Dict[str, Any]] = None) -> Any:
        return await asyncio.to_thread(self._request, 'POST', path, body, config)

    async def put(self, path: str, body: Any = None, config: Optional[Dict[str, Any]] = None) -> Any:
        return await asyncio.to_thread(self._request, 'PUT', path, body, config)

    async def delete(self, path: str, config: Optional[Dict[str, Any]] = None) -> Any:
        return await asyncio.to_thread(self._request, 'DELETE', path, None, config)

    def close(self) -> None:
        self.session.close()
