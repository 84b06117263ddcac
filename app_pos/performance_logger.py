# ==============================================================================
# PROFILING DEL MOTOR DE VENTAS
# ==============================================================================
# Mide rutas de la API de caja y funciones del motor (envío de venta,
# sincronización offline) sin afectar al cajero.
# Los logs legibles quedan en LOGS_DIR (config.LOGS_DIR).
#
# ACTIVAR/DESACTIVAR: POS_ENABLE_PROFILING
# ==============================================================================

import inspect
import os
import threading
import time
from collections import defaultdict
from datetime import datetime
from functools import wraps

from app_pos import config

# ═══════════════════════════════════════════════════════════════════════════
# CONFIGURACIÓN
# ═══════════════════════════════════════════════════════════════════════════

ENABLE_PROFILING = config.ENABLE_PROFILING
THRESHOLD_WARNING = config.THRESHOLD_WARNING
THRESHOLD_CRITICAL = config.THRESHOLD_CRITICAL

PERFORMANCE_LOG = os.path.join(config.LOGS_DIR, 'performance.log')
SLOW_ROUTES_LOG = os.path.join(config.LOGS_DIR, 'slow_routes.log')
SLOW_FUNCTIONS_LOG = os.path.join(config.LOGS_DIR, 'slow_functions.log')

# Nombres legibles de las rutas de caja
ROUTE_NAMES = {
    'GET /api/venta': 'Ver venta en curso',
    'POST /api/venta/items': 'Agregar producto',
    'PATCH /api/venta/items/<item_id>': 'Editar línea',
    'DELETE /api/venta/items/<item_id>': 'Quitar línea',
    'POST /api/venta/limpiar': 'Limpiar venta',
    'POST /api/venta/pago': 'Actualizar pago',
    'GET /api/venta/errores': 'Validar pago',
    'POST /api/venta/confirmar': 'Confirmar venta',
    'POST /api/venta/recuperar': 'Recuperar respaldo',
    'POST /api/offline/sync': 'Sincronizar pendientes',
    'GET /api/offline/estado': 'Estado de sincronización',
    'GET /api/rendimiento': 'Estadísticas de rendimiento',
}


# ═══════════════════════════════════════════════════════════════════════════
# ESTADÍSTICAS DE FUNCIONES (en memoria)
# ═══════════════════════════════════════════════════════════════════════════

# {nombre_funcion: {calls, total_time, max_time}}
_function_stats = defaultdict(lambda: {'calls': 0, 'total_time': 0.0, 'max_time': 0.0})
_stats_lock = threading.Lock()
_write_lock = threading.Lock()


def _get_timestamp():
    return datetime.now().strftime('%Y-%m-%d %H:%M:%S')


def _write_log(filepath, content):
    """Escribe en un log; un disco lleno no debe frenar la caja."""
    try:
        with _write_lock:
            os.makedirs(os.path.dirname(filepath), exist_ok=True)
            with open(filepath, 'a', encoding='utf-8') as f:
                f.write(content)
    except OSError:
        pass


def _get_route_name(method, rule):
    return ROUTE_NAMES.get(f"{method} {rule}", f"{method} {rule}")


# ═══════════════════════════════════════════════════════════════════════════
# 1️⃣ PROFILING DE RUTAS (hooks Flask)
# ═══════════════════════════════════════════════════════════════════════════

def log_route_performance(method, path, rule, time_ms, user=None):
    if not ENABLE_PROFILING:
        return

    log_entry = f"""
════════════════════════════════════════
[PERFORMANCE] {_get_timestamp()}
────────────────────────────────────────
Acción: {_get_route_name(method, rule)}
Usuario: {user or 'anónimo'}
Ruta: {method} {path}
Tiempo: {time_ms:.0f} ms
"""
    _write_log(PERFORMANCE_LOG, log_entry)


def log_slow_route(method, path, rule, time_ms, user=None, level='WARNING'):
    """
    Registra una ruta lenta.

    Args:
        level: 'WARNING' (>300ms) o 'CRITICAL' (>700ms)
    """
    if not ENABLE_PROFILING:
        return

    severity = 'LENTA' if level == 'WARNING' else 'MUY LENTA'
    threshold = THRESHOLD_WARNING if level == 'WARNING' else THRESHOLD_CRITICAL
    log_entry = f"""
[{level}] {_get_timestamp()}
────────────────────────────────────────
Ruta {severity}: {_get_route_name(method, rule)}
Usuario: {user or 'anónimo'}
Detalle: {method} {path}
Tiempo: {time_ms:.0f} ms (umbral: {threshold} ms)
────────────────────────────────────────
"""
    _write_log(SLOW_ROUTES_LOG, log_entry)


def init_profiling(app, user_getter=None):
    """
    Registra before_request/after_request en la app Flask.

    Args:
        app: Aplicación Flask
        user_getter: Función sin argumentos que devuelve el usuario actual
    """
    if not ENABLE_PROFILING:
        return

    from flask import g, request

    @app.before_request
    def _start_timer():
        g.start_time = time.perf_counter()

    @app.after_request
    def _log_request(response):
        if not hasattr(g, 'start_time'):
            return response

        elapsed = (time.perf_counter() - g.start_time) * 1000
        rule = str(request.url_rule) if request.url_rule else request.path
        user = user_getter() if user_getter else None

        log_route_performance(request.method, request.path, rule, elapsed, user)
        if elapsed >= THRESHOLD_CRITICAL:
            log_slow_route(request.method, request.path, rule, elapsed, user, 'CRITICAL')
        elif elapsed >= THRESHOLD_WARNING:
            log_slow_route(request.method, request.path, rule, elapsed, user, 'WARNING')
        return response


# ═══════════════════════════════════════════════════════════════════════════
# 2️⃣ DECORADOR PARA FUNCIONES CLAVE (sync y async)
# ═══════════════════════════════════════════════════════════════════════════

def _record(func_name, elapsed_ms):
    with _stats_lock:
        stats = _function_stats[func_name]
        stats['calls'] += 1
        stats['total_time'] += elapsed_ms
        if elapsed_ms > stats['max_time']:
            stats['max_time'] = elapsed_ms

    if elapsed_ms >= THRESHOLD_WARNING:
        _log_slow_function_call(func_name, elapsed_ms)


def profile_function(func=None, name=None):
    """
    Decorador para medir funciones críticas. Acepta corrutinas.

    Uso:
        @profile_function
        async def submit(self): ...

        @profile_function(name="Sincronizar cola offline")
        async def sync_pending_actions(self): ...
    """
    def decorator(fn):
        if not ENABLE_PROFILING:
            return fn

        func_name = name or fn.__qualname__

        if inspect.iscoroutinefunction(fn):
            @wraps(fn)
            async def async_wrapper(*args, **kwargs):
                start = time.perf_counter()
                try:
                    return await fn(*args, **kwargs)
                finally:
                    _record(func_name, (time.perf_counter() - start) * 1000)
            return async_wrapper

        @wraps(fn)
        def wrapper(*args, **kwargs):
            start = time.perf_counter()
            try:
                return fn(*args, **kwargs)
            finally:
                _record(func_name, (time.perf_counter() - start) * 1000)
        return wrapper

    if func is not None:
        return decorator(func)
    return decorator


def _log_slow_function_call(func_name, time_ms):
    severity = 'CRÍTICO' if time_ms >= THRESHOLD_CRITICAL else 'LENTO'
    log_entry = f"""
[{severity}] {_get_timestamp()}
Función: {func_name}
Tiempo: {time_ms:.0f} ms
────────────────────────────────────────
"""
    _write_log(SLOW_FUNCTIONS_LOG, log_entry)


# ═══════════════════════════════════════════════════════════════════════════
# 3️⃣ REPORTE DE ESTADÍSTICAS
# ═══════════════════════════════════════════════════════════════════════════

def get_function_stats():
    """
    Returns:
        dict: {nombre: {calls, avg_time, max_time}}
    """
    with _stats_lock:
        result = {}
        for func_name, stats in _function_stats.items():
            calls = stats['calls']
            avg = stats['total_time'] / calls if calls > 0 else 0
            result[func_name] = {
                'calls': calls,
                'avg_time': round(avg, 2),
                'max_time': round(stats['max_time'], 2)
            }
        return result


def reset_stats():
    """Reinicia las estadísticas (tests)."""
    with _stats_lock:
        _function_stats.clear()


__all__ = [
    'ENABLE_PROFILING',
    'init_profiling',
    'profile_function',
    'get_function_stats',
    'reset_stats',
]
