# ==============================================================================
# MEDICIÓN DE RENDIMIENTO
# ==============================================================================
# Tiempos de peticiones HTTP y de operaciones pesadas (pagos, recordatorios).
#
#   logs/performance.log  → una línea por petición
#   logs/slow.log         → peticiones y funciones sobre el umbral
#
# Se apaga con SGI_ENABLE_PROFILING=0.
# ==============================================================================

import logging
import os
import threading
import time
from functools import wraps
from logging.handlers import RotatingFileHandler

from sgi_gps import config

ENABLE_PROFILING = config.ENABLE_PROFILING

SLOW_MS = 300
CRITICAL_MS = 700

LOGS_DIR = os.path.join(config.BASE, 'logs')

# Nombre legible por regla de Flask; lo que no esté aquí se registra crudo
ACTIONS = {
    'POST /': 'Iniciar sesión',
    'GET /api/dashboard': 'Panel principal',
    'POST /api/clients': 'Crear cliente',
    'POST /api/payments': 'Registrar pago',
    'POST /api/payments/<payment_id>/delete': 'Eliminar pago',
    'POST /api/notifications/check': 'Revisión de recordatorios',
    'POST /api/units/bulk-status': 'Cambio de estado en lote',
    'POST /api/clients/<client_id>/units/import-pgps': 'Importar unidades de P. GPS',
    'GET /api/reports/<kind>/export': 'Exportar reporte',
}

_timing_log = logging.getLogger('sgi_gps.timing')
_slow_log = logging.getLogger('sgi_gps.timing.slow')
_slow_log.propagate = False

_stats = {}
_stats_lock = threading.Lock()
_handlers_ready = False


def _attach_file_handlers():
    """Conecta los loggers de tiempos a sus archivos (una sola vez)."""
    global _handlers_ready
    if _handlers_ready:
        return
    try:
        os.makedirs(LOGS_DIR, exist_ok=True)
    except OSError as e:
        logging.getLogger(__name__).warning("Sin directorio de logs (%s): %s", LOGS_DIR, e)
        return

    fmt = logging.Formatter('%(asctime)s | %(message)s', '%Y-%m-%d %H:%M:%S')
    for target, filename in ((_timing_log, 'performance.log'), (_slow_log, 'slow.log')):
        handler = RotatingFileHandler(
            os.path.join(LOGS_DIR, filename), maxBytes=2 * 1024 * 1024, backupCount=3, encoding='utf-8'
        )
        handler.setFormatter(fmt)
        target.addHandler(handler)
        target.setLevel(logging.INFO)
    _handlers_ready = True


def _severity(elapsed_ms):
    if elapsed_ms >= CRITICAL_MS:
        return logging.CRITICAL
    if elapsed_ms >= SLOW_MS:
        return logging.WARNING
    return None


# ═══════════════════════════════════════════════════════════════════════════
# PETICIONES
# ═══════════════════════════════════════════════════════════════════════════

def init_profiling(app):
    """Registra los hooks de medición en la app Flask."""
    if not ENABLE_PROFILING:
        return
    _attach_file_handlers()

    from flask import g, request, session

    @app.before_request
    def _start_clock():
        g.request_started = time.perf_counter()

    @app.after_request
    def _record_request(response):
        started = g.pop('request_started', None)
        if started is None:
            return response

        elapsed = (time.perf_counter() - started) * 1000
        rule = request.url_rule.rule if request.url_rule else request.path
        key = f"{request.method} {rule}"
        action = ACTIONS.get(key, key)
        who = session.get('user') or 'anónimo'

        _timing_log.info("%s | %s | %s %s | %d | %.0f ms",
                         action, who, request.method, request.path, response.status_code, elapsed)
        level = _severity(elapsed)
        if level:
            _slow_log.log(level, "Ruta lenta: %s | %s | %.0f ms", action, who, elapsed)
        return response


# ═══════════════════════════════════════════════════════════════════════════
# FUNCIONES
# ═══════════════════════════════════════════════════════════════════════════

def profile_function(func=None, name=None):
    """
    Decorador que acumula llamadas, tiempo promedio y máximo de una función.

    Se puede usar como ``@profile_function`` o ``@profile_function(name='...')``.
    Las llamadas sobre el umbral se registran en slow.log.
    """
    def decorator(fn):
        if not ENABLE_PROFILING:
            return fn
        label = name or fn.__name__

        @wraps(fn)
        def wrapper(*args, **kwargs):
            started = time.perf_counter()
            try:
                return fn(*args, **kwargs)
            finally:
                _record_call(label, (time.perf_counter() - started) * 1000)

        return wrapper

    if func is not None:
        return decorator(func)
    return decorator


def _record_call(label, elapsed_ms):
    with _stats_lock:
        calls, total, peak = _stats.get(label, (0, 0.0, 0.0))
        _stats[label] = (calls + 1, total + elapsed_ms, max(peak, elapsed_ms))

    level = _severity(elapsed_ms)
    if level:
        _slow_log.log(level, "Función lenta: %s | %.0f ms", label, elapsed_ms)


def get_function_stats():
    """Devuelve {nombre: {calls, avg_time, max_time}} con tiempos en ms."""
    with _stats_lock:
        return {
            label: {
                'calls': calls,
                'avg_time': round(total / calls, 2) if calls else 0,
                'max_time': round(peak, 2),
            }
            for label, (calls, total, peak) in _stats.items()
        }


def reset_stats():
    with _stats_lock:
        _stats.clear()
