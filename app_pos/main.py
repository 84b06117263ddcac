# ==============================================================================
# API JSON DE LA CAJA
# ==============================================================================
# Rutas delgadas: request → servicio → respuesta JSON.
# Toda la lógica vive en services/. SIEMPRE devuelven JSON, nunca redirect.
# ==============================================================================

import logging
import os

from flask import Flask, request

from app_pos import config
from app_pos.app_container import AppContainer, get_container
from app_pos.models.entities import Client
from app_pos.performance_logger import get_function_stats, init_profiling, reset_stats

logger = logging.getLogger(__name__)


def _status(result):
    return 200 if result.get('ok') else 400


def create_app(container: AppContainer = None) -> Flask:
    """
    Crea la app Flask de la terminal.

    Args:
        container: Contenedor ya armado (tests); por defecto el global
    """
    app = Flask(__name__)
    container = container or get_container()
    app.config['POS_CONTAINER'] = container

    # ═══════════════════════════════════════════════════════════════════════
    # PROFILING
    # ═══════════════════════════════════════════════════════════════════════
    init_profiling(app, user_getter=lambda: container.auth.username or None)

    # ═══════════════════════════════════════════════════════════════════════
    # API: VENTA EN CURSO
    # ═══════════════════════════════════════════════════════════════════════

    @app.route('/api/venta', methods=['GET'])
    def api_venta_ver():
        """Venta en curso con totales y avisos pendientes."""
        return {
            'ok': True,
            'venta': container.cart_service.get_cart(),
            'notificaciones': container.notifier.drain(),
        }

    @app.route('/api/venta/items', methods=['POST'])
    def api_venta_agregar():
        """
        Agrega un producto.
        Espera JSON con product_id o code (código de barras / SKU).
        """
        data = request.get_json(silent=True)
        if not data:
            return {'ok': False, 'error': 'Datos no recibidos o formato inválido'}, 400

        catalog = container.catalog_service
        product = None
        if data.get('product_id') is not None:
            product = catalog.get_product(str(data['product_id']))
        elif data.get('code'):
            product = catalog.find_by_code(str(data['code']))
        if product is None:
            return {'ok': False, 'error': 'Producto no encontrado'}, 404

        result = container.cart_service.add_item(product)
        return result, _status(result)

    @app.route('/api/venta/items/<item_id>', methods=['PATCH'])
    def api_venta_editar(item_id):
        """
        Edita una línea. Campos opcionales: quantity, unit_price, margin, discount.
        Si un campo es inválido no se aplica ninguno.
        """
        data = request.get_json(silent=True)
        if not data:
            return {'ok': False, 'error': 'Datos no recibidos'}, 400

        result = container.cart_service.update_item(item_id, data)
        return result, _status(result)

    @app.route('/api/venta/items/<item_id>', methods=['DELETE'])
    def api_venta_quitar(item_id):
        result = container.cart_service.remove_item(item_id)
        return result, _status(result)

    @app.route('/api/venta/limpiar', methods=['POST'])
    def api_venta_limpiar():
        """Vacía la venta. Requiere {"confirm": true}."""
        data = request.get_json(silent=True) or {}
        result = container.cart_service.clear(confirmed=bool(data.get('confirm')))
        return result, _status(result)

    @app.route('/api/venta/pago', methods=['POST'])
    def api_venta_pago():
        """
        Actualiza campos de pago.

        Body JSON (todos opcionales):
        {
            "payment_method": "cash|card|transfer|mixed",
            "payment_details": {"cash": 0, "card": 0, "transfer": 0,
                                "cardReference": "", "transferReference": ""},
            "cash_received": "250",
            "reference": "...",
            "discount_reason": "...",
            "notes": "...",
            "apply_tax": true
        }
        """
        data = request.get_json(silent=True)
        if not data:
            return {'ok': False, 'error': 'Datos no recibidos'}, 400

        cart = container.cart_service
        steps = [
            ('payment_method', cart.set_payment_method),
            ('payment_details', cart.set_payment_details),
            ('cash_received', cart.set_cash_received),
            ('reference', cart.set_single_reference),
            ('discount_reason', cart.set_discount_reason),
            ('notes', cart.set_notes),
            ('apply_tax', cart.set_apply_tax),
        ]
        result = {'ok': True, 'cart': cart.get_cart()}
        for key, setter in steps:
            if key in data:
                result = setter(data[key])
                if not result.get('ok'):
                    break
        return result, _status(result)

    @app.route('/api/venta/contexto', methods=['POST'])
    def api_venta_contexto():
        """Tipo de venta, agencia, guía, vendedor y cliente."""
        data = request.get_json(silent=True)
        if not data:
            return {'ok': False, 'error': 'Datos no recibidos'}, 400

        cart = container.cart_service
        catalog = container.catalog_service
        result = {'ok': True, 'cart': cart.get_cart()}
        if 'sale_type' in data:
            result = cart.set_sale_type(data['sale_type'])
        if result.get('ok') and 'agency_id' in data:
            result = cart.set_agency(catalog.agencies.get(str(data['agency_id'])))
        if result.get('ok') and 'guide_id' in data:
            result = cart.set_guide(catalog.guides.get(str(data['guide_id'])))
        if result.get('ok') and 'employee_id' in data:
            result = cart.set_employee(catalog.employees.get(str(data['employee_id'])))
        if result.get('ok') and 'client' in data:
            client = data['client']
            result = cart.set_client(Client.from_dict(client) if isinstance(client, dict) else None)
        return result, _status(result)

    @app.route('/api/venta/errores', methods=['GET'])
    def api_venta_errores():
        """Errores que hoy bloquean la confirmación."""
        sale = container.cart_service.sale
        container.pricing_service.recalculate(sale)
        errors = container.submission_service.validate(sale)
        return {'ok': not errors, 'errors': errors}

    @app.route('/api/venta/confirmar', methods=['POST'])
    async def api_venta_confirmar():
        """
        Confirma la venta.

        Respuesta:
        - state: submitted | queued-offline | failed-recoverable | invalid | busy
        - offerRecovery: true si conviene ofrecer /api/venta/recuperar
        """
        result = await container.submission_service.submit()
        code = 200 if result.ok else (409 if result.state.value == 'busy' else 400)
        return result.to_dict(), code

    @app.route('/api/venta/recuperar', methods=['POST'])
    def api_venta_recuperar():
        """Restaura el respaldo más reciente en la venta."""
        result = container.submission_service.recover_latest_backup()
        return result, _status(result)

    @app.route('/api/venta/cliente', methods=['POST'])
    async def api_venta_cliente():
        """Crea un cliente y lo asigna a la venta."""
        data = request.get_json(silent=True)
        if not data:
            return {'ok': False, 'error': 'Datos no recibidos'}, 400
        result = await container.submission_service.create_client(data)
        return result, _status(result)

    # ═══════════════════════════════════════════════════════════════════════
    # API: CATÁLOGO
    # ═══════════════════════════════════════════════════════════════════════

    @app.route('/api/catalogo/cargar', methods=['POST'])
    async def api_catalogo_cargar():
        """Carga el catálogo y, si la venta está vacía, restaura el borrador."""
        catalog = container.catalog_service
        await catalog.load_all()
        restored = None
        cart = container.cart_service
        if not cart.sale.items and container.draft_service.has_draft():
            restored = cart.restore_from_draft(
                catalog.products, catalog.agencies, catalog.guides, catalog.employees
            )
        return {
            'ok': True,
            'products': [p.to_dict() for p in catalog.products.values()],
            'restored': restored,
        }

    # ═══════════════════════════════════════════════════════════════════════
    # API: COLA OFFLINE
    # ═══════════════════════════════════════════════════════════════════════

    @app.route('/api/offline/estado', methods=['GET'])
    def api_offline_estado():
        return {'ok': True, 'status': container.offline_queue.sync_status()}

    @app.route('/api/offline/estado', methods=['POST'])
    async def api_offline_cambiar():
        """Informa el estado de red ({"offline": bool}); sincroniza si corresponde."""
        data = request.get_json(silent=True) or {}
        queue = container.offline_queue
        sync = None
        if queue.set_offline_status(bool(data.get('offline'))):
            sync = await queue.sync_pending_actions()
        return {'ok': True, 'status': queue.sync_status(), 'sync': sync}

    @app.route('/api/offline/sync', methods=['POST'])
    async def api_offline_sync():
        data = request.get_json(silent=True) or {}
        queue = container.offline_queue
        if data.get('retry_failed'):
            result = await queue.retry_failed_actions()
        else:
            result = await queue.sync_pending_actions()
        return {'ok': True, 'result': result, 'status': queue.sync_status()}

    # ═══════════════════════════════════════════════════════════════════════
    # API: RENDIMIENTO
    # ═══════════════════════════════════════════════════════════════════════

    @app.route('/api/rendimiento', methods=['GET'])
    def api_rendimiento():
        """Estadísticas de las funciones perfiladas (llamadas, promedio, máximo en ms)."""
        return {'ok': True, 'functions': get_function_stats()}

    @app.route('/api/rendimiento', methods=['DELETE'])
    def api_rendimiento_reiniciar():
        reset_stats()
        return {'ok': True, 'functions': {}}

    return app


if __name__ == '__main__':
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s'
    )
    DEBUG = os.environ.get('FLASK_DEBUG', '0') == '1'
    HOST = os.environ.get('FLASK_HOST', '127.0.0.1')
    PORT = int(os.environ.get('FLASK_PORT', 5000))

    logger.info("Caja iniciada en http://%s:%d (datos en %s)", HOST, PORT, config.DATA_DIR)
    create_app().run(host=HOST, port=PORT, debug=DEBUG)
