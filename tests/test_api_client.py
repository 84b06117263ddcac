import asyncio
import json

import pytest
import requests
from requests.adapters import BaseAdapter

from app_pos.exceptions import AuthError, ConflictError, NetworkError
from app_pos.services import RequestsApiClient


class StubAdapter(BaseAdapter):
    """Responde sin red: cada envío consume una respuesta (status, body)."""

    def __init__(self, *responses):
        super().__init__()
        self.responses = list(responses)
        self.requests = []

    def send(self, request, **kwargs):
        self.requests.append(request)
        outcome = self.responses.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        status, body = outcome
        response = requests.Response()
        response.status_code = status
        response.reason = 'Stub'
        response._content = b'' if body is None else json.dumps(body).encode('utf-8')
        response.headers['Content-Type'] = 'application/json'
        response.url = request.url
        response.request = request
        return response

    def close(self):
        pass


def _client(*responses):
    adapter = StubAdapter(*responses)
    api = RequestsApiClient('http://pos.local/api/', token='tok-1')
    api.session.mount('http://', adapter)
    return api, adapter


def test_data_envelope_is_unwrapped_and_token_sent():
    api, adapter = _client((200, {'data': [{'id': 'p1'}]}))

    data = asyncio.run(api.get('/products'))

    assert data == [{'id': 'p1'}]
    [sent] = adapter.requests
    assert sent.url == 'http://pos.local/api/products'
    assert sent.headers['Authorization'] == 'Bearer tok-1'


def test_idempotency_header_travels_with_body():
    api, adapter = _client((201, {'id': 's1'}))

    created = asyncio.run(api.post('/sales', {'total': 10},
                                   {'headers': {'Idempotency-Key': 'k-9'}, 'suppress_global_error': True}))

    assert created == {'id': 's1'}
    sent = adapter.requests[0]
    assert sent.headers['Idempotency-Key'] == 'k-9'
    assert json.loads(sent.body) == {'total': 10}


def test_status_codes_map_to_error_types():
    api, _ = _client((401, {'message': 'Token expirado'}), (409, {'error': 'Duplicada'}),
                     (502, None))

    with pytest.raises(AuthError) as auth:
        asyncio.run(api.get('/sales'))
    assert auth.value.message == 'Token expirado'
    assert auth.value.is_auth_error

    with pytest.raises(ConflictError):
        asyncio.run(api.post('/sales', {}))

    with pytest.raises(NetworkError) as server:
        asyncio.run(api.get('/sales'))
    assert server.value.is_transient


def test_connection_failure_is_network_error():
    api, _ = _client(requests.ConnectionError('sin red'))

    with pytest.raises(NetworkError) as error:
        asyncio.run(api.delete('/clients/c1'))
    assert error.value.status is None


def test_empty_response_returns_none():
    api, _ = _client((204, None))
    assert asyncio.run(api.put('/clients/c1', {'firstName': 'Ana'})) is None
