import logging
import os
import tempfile
import uuid
from datetime import datetime
from functools import wraps

from flask import Flask, g, jsonify, request, send_file, session
from werkzeug.utils import secure_filename

from sgi_gps import config

# Sistema de profiling interno
from sgi_gps.performance_logger import init_profiling

# Sistema de backups automáticos
from sgi_gps.services.backup_service import run_startup_backup
from sgi_gps.services import access, report_service, validation

# ═══════════════════════════════════════════════════════════════════════════
# CONTENEDOR DE DEPENDENCIAS - Servicios y Repositorios
# ═══════════════════════════════════════════════════════════════════════════
# Las rutas solo leen la petición, llaman a un servicio y devuelven JSON.
# Toda la lógica de negocio vive en services/.
# ═══════════════════════════════════════════════════════════════════════════
from sgi_gps.app_container import get_container

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s %(levelname)s %(name)s: %(message)s',
)
logger = logging.getLogger(__name__)

app = Flask(__name__)

# ═══════════════════════════════════════════════════════════════════════════
# INICIALIZAR SISTEMA DE PROFILING
# ═══════════════════════════════════════════════════════════════════════════
# Mide rendimiento de rutas y funciones. Logs en sgi_gps/logs/
# Para desactivar: SGI_ENABLE_PROFILING=0
init_profiling(app)

# ═══════════════════════════════════════════════════════════════════════════
# SESIONES
# ═══════════════════════════════════════════════════════════════════════════
if config.PRODUCTION_MODE and not config.SECRET_KEY:
    logger.warning("[ADVERTENCIA] SGI_PRODUCTION activo sin SGI_SECRET_KEY definida")

app.secret_key = config.SECRET_KEY or config.DEFAULT_SECRET

app.config.update(
    SESSION_COOKIE_HTTPONLY=True,
    SESSION_COOKIE_SECURE=config.PRODUCTION_MODE,
    SESSION_COOKIE_SAMESITE='Lax',
    PERMANENT_SESSION_LIFETIME=config.SESSION_LIFETIME,
    MAX_CONTENT_LENGTH=10 * 1024 * 1024,
)

XLSX_MIMETYPE = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'


# ═══════════════════════════════════════════════════════════════════════════
# HELPERS DE RESPUESTA
# ═══════════════════════════════════════════════════════════════════════════

def _error_status(error):
    """Código HTTP según el texto del error devuelto por un servicio."""
    text = (error or '').lower()
    if 'no permitida' in text or 'permiso' in text:
        return 403
    if 'no encontrad' in text or 'no existe' in text:
        return 404
    return 400


def respond(result, created=False):
    """Convierte el dict {'ok', ...} de un servicio en respuesta JSON."""
    if result.get('ok'):
        return jsonify(result), 201 if created else 200
    return jsonify(result), _error_status(result.get('error'))


def not_found(message='Recurso no encontrado.'):
    return jsonify({'ok': False, 'error': message}), 404


def get_payload():
    """Cuerpo de la petición (JSON o formulario) sin el token CSRF."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        data = request.form.to_dict()
    data = dict(data)
    data.pop('csrf_token', None)
    return data


def _split_arg(name):
    values = []
    for raw in request.args.getlist(name):
        values.extend(v.strip() for v in raw.split(',') if v.strip())
    return values


def current_user():
    """Usuario en sesión, recargado una vez por petición."""
    if 'current_user' not in g:
        user_id = session.get('user_id')
        g.current_user = get_container().user_service.get_user(user_id) if user_id else None
    return g.current_user


# ═══════════════════════════════════════════════════════════════════════════
# DECORADORES DE SEGURIDAD
# ═══════════════════════════════════════════════════════════════════════════

def login_required(f):
    @wraps(f)
    def wrapper(*args, **kwargs):
        if current_user() is None:
            session.clear()
            return jsonify({'ok': False, 'error': 'Debes iniciar sesión.'}), 401
        return f(*args, **kwargs)
    return wrapper


def role_required(*roles):
    def deco(f):
        @wraps(f)
        def wrapper(*args, **kwargs):
            user = current_user()
            if user is None or user.get('role') not in roles:
                return jsonify({'ok': False, 'error': 'Permiso denegado.'}), 403
            return f(*args, **kwargs)
        return wrapper
    return deco


def generate_csrf_token():
    if 'csrf_token' not in session:
        session['csrf_token'] = uuid.uuid4().hex
    return session['csrf_token']


def verify_csrf(f):
    @wraps(f)
    def wrapper(*args, **kwargs):
        if request.method == 'POST':
            token = session.get('csrf_token')
            form_token = (
                request.form.get('csrf_token') or
                request.headers.get('X-CSRF-Token') or
                request.headers.get('X-CSRFToken')
            )
            if not form_token and request.is_json:
                json_data = request.get_json(silent=True) or {}
                if isinstance(json_data, dict):
                    form_token = json_data.get('csrf_token')

            if not token or not form_token or token != form_token:
                return jsonify({'ok': False, 'error': 'CSRF token inválido'}), 403
        return f(*args, **kwargs)
    return wrapper


@app.after_request
def set_security_headers(response):
    response.headers['X-Frame-Options'] = 'DENY'
    response.headers['X-Content-Type-Options'] = 'nosniff'
    response.headers['Referrer-Policy'] = 'no-referrer-when-downgrade'
    response.headers['Permissions-Policy'] = 'geolocation=(), microphone=()'
    # HSTS solo con HTTPS real
    if request.is_secure:
        response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'
    return response


# ═══════════════════════════════════════════════════════════════════════════════
# PROTECCIÓN DE RUTAS SENSIBLES
# ═══════════════════════════════════════════════════════════════════════════════
@app.route('/backups/<path:filename>')
@app.route('/logs/<path:filename>')
def block_sensitive_routes(filename):
    """Bloquea acceso a carpetas sensibles como backups y logs."""
    return "Not Found", 404


# ═══════════════════════════════════════════════════════════════════════════════
# SESIÓN: LOGIN / LOGOUT
# ═══════════════════════════════════════════════════════════════════════════════

@app.route('/', methods=['GET', 'POST'])
@verify_csrf
def login():
    if request.method == 'GET':
        return jsonify({'ok': True, 'csrf_token': generate_csrf_token(), 'user': current_user()})

    data = get_payload()
    result = get_container().user_service.login(data.get('username') or data.get('user'), data.get('password'))
    if not result['ok']:
        return jsonify(result), 401

    user = result['user']
    session.clear()
    session.permanent = True
    session['user_id'] = user['id']
    session['user'] = user['username']
    session['role'] = user['role']
    return jsonify({'ok': True, 'message': result['message'], 'user': user, 'csrf_token': generate_csrf_token()})


@app.route('/logout')
@login_required
def logout():
    get_container().user_service.logout(session.get('user'))
    session.clear()
    return jsonify({'ok': True, 'message': 'Sesión cerrada.'})


@app.route('/api/session')
@login_required
def session_info():
    return jsonify({'ok': True, 'user': current_user(), 'csrf_token': generate_csrf_token()})


@app.route('/api/dashboard')
@login_required
def dashboard():
    return respond(get_container().unit_service.dashboard_summary(current_user()))


# ═══════════════════════════════════════════════════════════════════════════════
# CLIENTES
# ═══════════════════════════════════════════════════════════════════════════════

@app.route('/api/clients')
@login_required
def list_clients():
    return jsonify({'ok': True, 'clients': get_container().client_service.list_clients(current_user())})


@app.route('/api/clients/<client_id>')
@login_required
def get_client(client_id):
    container = get_container()
    client = container.client_service.get_client(client_id, current_user())
    if client is None:
        return not_found('El cliente no fue encontrado.')
    units = container.unit_service.get_units_by_client(client_id)
    return jsonify({'ok': True, 'client': client, 'units': units})


@app.route('/api/clients', methods=['POST'])
@login_required
@verify_csrf
def create_client():
    return respond(get_container().client_service.save_client(get_payload(), current_user()), created=True)


@app.route('/api/clients/<client_id>', methods=['POST'])
@login_required
@verify_csrf
def update_client(client_id):
    return respond(get_container().client_service.save_client(get_payload(), current_user(), client_id))


@app.route('/api/clients/<client_id>/delete', methods=['POST'])
@login_required
@verify_csrf
def delete_client(client_id):
    return respond(get_container().client_service.delete_client(client_id, current_user()))


# ═══════════════════════════════════════════════════════════════════════════════
# UNIDADES
# ═══════════════════════════════════════════════════════════════════════════════

@app.route('/api/units')
@login_required
def list_units():
    units = get_container().unit_service.get_all_units(current_user())
    return jsonify({'ok': True, 'units': units})


@app.route('/api/clients/<client_id>/units', methods=['POST'])
@login_required
@verify_csrf
def create_unit(client_id):
    result = get_container().unit_service.save_unit(get_payload(), client_id, current_user())
    return respond(result, created=True)


@app.route('/api/clients/<client_id>/units/<unit_id>')
@login_required
def get_unit(client_id, unit_id):
    container = get_container()
    if container.client_service.get_client(client_id, current_user()) is None:
        return not_found('El cliente no fue encontrado.')
    unit = container.unit_service.get_unit(client_id, unit_id)
    if unit is None:
        return not_found('La unidad no fue encontrada.')
    return jsonify({'ok': True, 'unit': unit})


@app.route('/api/clients/<client_id>/units/<unit_id>', methods=['POST'])
@login_required
@verify_csrf
def update_unit(client_id, unit_id):
    return respond(get_container().unit_service.save_unit(get_payload(), client_id, current_user(), unit_id))


@app.route('/api/clients/<client_id>/units/<unit_id>/delete', methods=['POST'])
@login_required
@verify_csrf
def delete_unit(client_id, unit_id):
    return respond(get_container().unit_service.delete_unit(unit_id, client_id, current_user()))


@app.route('/api/clients/<client_id>/units/<unit_id>/status', methods=['POST'])
@login_required
@verify_csrf
def set_unit_status(client_id, unit_id):
    suspend = validation.boolean(get_payload(), 'suspend')
    return respond(get_container().unit_service.set_unit_status(unit_id, client_id, suspend, current_user()))


@app.route('/api/clients/<client_id>/units/<unit_id>/contract', methods=['POST'])
@login_required
@verify_csrf
def save_contract_url(client_id, unit_id):
    url = get_payload().get('url')
    return respond(get_container().unit_service.save_contract_url(client_id, unit_id, url, current_user()))


@app.route('/api/clients/<client_id>/import-pgps', methods=['POST'])
@login_required
@verify_csrf
def import_pgps_devices(client_id):
    return respond(get_container().unit_service.import_pgps_devices(client_id, current_user()))


@app.route('/api/units/bulk-delete', methods=['POST'])
@login_required
@verify_csrf
def bulk_delete_units():
    items = get_payload().get('items') or []
    return respond(get_container().unit_service.bulk_delete_units(items, current_user()))


@app.route('/api/units/bulk-status', methods=['POST'])
@login_required
@verify_csrf
def bulk_set_unit_status():
    data = get_payload()
    result = get_container().unit_service.bulk_set_unit_status(
        data.get('items') or [], validation.boolean(data, 'suspend'), current_user()
    )
    return respond(result)


# ═══════════════════════════════════════════════════════════════════════════════
# PAGOS
# ═══════════════════════════════════════════════════════════════════════════════

@app.route('/api/payments')
@login_required
def payment_history():
    return jsonify({'ok': True, 'payments': get_container().payment_service.get_payment_history(current_user())})


@app.route('/api/payments', methods=['POST'])
@login_required
@verify_csrf
def register_payment():
    data = get_payload()
    unit_ids = data.pop('unitIds', None) or data.pop('unitId', None)
    if isinstance(unit_ids, str):
        unit_ids = [unit_ids]
    client_id = data.pop('clientId', None)
    result = get_container().payment_service.register_payment(data, unit_ids, client_id, current_user())
    return respond(result, created=True)


@app.route('/api/payments/<payment_id>/delete', methods=['POST'])
@login_required
@verify_csrf
def delete_payment(payment_id):
    data = get_payload()
    result = get_container().payment_service.delete_payment(
        payment_id, data.get('clientId'), data.get('unitId'), current_user()
    )
    return respond(result)


@app.route('/api/payments/backfill-owners', methods=['POST'])
@login_required
@role_required(access.ROLE_MASTER)
@verify_csrf
def backfill_payment_owners():
    return respond(get_container().payment_service.backfill_payment_owner_ids(current_user()))


# ═══════════════════════════════════════════════════════════════════════════════
# NOTIFICACIONES Y PLANTILLAS
# ═══════════════════════════════════════════════════════════════════════════════

@app.route('/api/notifications/check', methods=['POST'])
@login_required
@verify_csrf
def trigger_notification_check():
    return respond(get_container().reminder_service.trigger_manual_notification_check(current_user()))


@app.route('/api/templates')
@login_required
def list_templates():
    templates = get_container().template_service.get_templates_for_user(current_user()['id'])
    return jsonify({'ok': True, 'templates': templates})


@app.route('/api/templates', methods=['POST'])
@login_required
@verify_csrf
def create_template():
    return respond(get_container().template_service.save_template(get_payload(), current_user()), created=True)


@app.route('/api/templates/<template_id>', methods=['POST'])
@login_required
@verify_csrf
def update_template(template_id):
    return respond(get_container().template_service.save_template(get_payload(), current_user(), template_id))


@app.route('/api/templates/<template_id>/delete', methods=['POST'])
@login_required
@verify_csrf
def delete_template(template_id):
    return respond(get_container().template_service.delete_template(template_id, current_user()))


@app.route('/api/message-logs')
@login_required
def message_logs():
    return respond(get_container().message_log_service.get_logs(request.args.get('page', 1, type=int)))


@app.route('/api/message-logs/clear', methods=['POST'])
@login_required
@verify_csrf
def clear_message_logs():
    return respond(get_container().message_log_service.clear_logs(current_user()))


# ═══════════════════════════════════════════════════════════════════════════════
# USUARIOS Y PERFIL
# ═══════════════════════════════════════════════════════════════════════════════

@app.route('/api/users')
@login_required
@role_required(access.ROLE_MASTER, access.ROLE_MANAGER)
def list_users():
    return jsonify({'ok': True, 'users': get_container().user_service.list_users(current_user())})


@app.route('/api/technicians')
@login_required
@role_required(access.ROLE_MASTER, access.ROLE_MANAGER)
def list_technicians():
    return jsonify({'ok': True, 'technicians': get_container().user_service.get_technicians(current_user())})


@app.route('/api/users', methods=['POST'])
@login_required
@role_required(access.ROLE_MASTER, access.ROLE_MANAGER)
@verify_csrf
def create_user():
    result = get_container().user_service.save_user(get_payload(), actor=current_user())
    return respond(result, created=True)


@app.route('/api/users/<user_id>', methods=['POST'])
@login_required
@role_required(access.ROLE_MASTER, access.ROLE_MANAGER)
@verify_csrf
def update_user(user_id):
    return respond(get_container().user_service.save_user(get_payload(), user_id, actor=current_user()))


@app.route('/api/users/<user_id>/delete', methods=['POST'])
@login_required
@role_required(access.ROLE_MASTER, access.ROLE_MANAGER)
@verify_csrf
def delete_user(user_id):
    return respond(get_container().user_service.delete_user(user_id, actor=current_user()))


@app.route('/api/profile')
@login_required
def profile():
    return jsonify({'ok': True, 'user': current_user()})


@app.route('/api/profile', methods=['POST'])
@login_required
@verify_csrf
def update_profile():
    return respond(get_container().user_service.update_profile(current_user()['id'], get_payload()))


@app.route('/api/profile/notification-url', methods=['POST'])
@login_required
@verify_csrf
def save_notification_url():
    url = get_payload().get('url')
    return respond(get_container().user_service.save_notification_url(current_user()['id'], url))


# ═══════════════════════════════════════════════════════════════════════════════
# ÓRDENES DE SOPORTE E INSTALACIÓN
# ═══════════════════════════════════════════════════════════════════════════════
# Ambos tipos comparten rutas: /api/work-orders/... y /api/installations/...

ORDER_KINDS = "any('work-orders', installations)"


def order_service_for(kind):
    container = get_container()
    if kind == 'installations':
        return container.installation_order_service
    return container.work_order_service


@app.route(f'/api/<{ORDER_KINDS}:kind>')
@login_required
def list_orders(kind):
    return jsonify({'ok': True, 'orders': order_service_for(kind).list(current_user())})


@app.route(f'/api/<{ORDER_KINDS}:kind>/<order_id>')
@login_required
def get_order(kind, order_id):
    service = order_service_for(kind)
    order = service.get(order_id)
    if order is None:
        return not_found(service.NOT_FOUND)
    if not service.can_view(order, current_user()):
        return jsonify({'ok': False, 'error': 'No tiene permiso para ver esta orden.'}), 403
    return jsonify({'ok': True, 'order': order})


@app.route(f'/api/<{ORDER_KINDS}:kind>', methods=['POST'])
@login_required
@verify_csrf
def create_order(kind):
    return respond(order_service_for(kind).save(get_payload(), current_user()), created=True)


@app.route(f'/api/<{ORDER_KINDS}:kind>/<order_id>', methods=['POST'])
@login_required
@verify_csrf
def update_order(kind, order_id):
    return respond(order_service_for(kind).save(get_payload(), current_user(), order_id))


@app.route(f'/api/<{ORDER_KINDS}:kind>/<order_id>/delete', methods=['POST'])
@login_required
@verify_csrf
def delete_order(kind, order_id):
    return respond(order_service_for(kind).delete(order_id, current_user()))


# ═══════════════════════════════════════════════════════════════════════════════
# REPORTES EXCEL
# ═══════════════════════════════════════════════════════════════════════════════

def _filtered_orders(kind):
    orders = order_service_for(kind).list(current_user())
    return report_service.filter_orders(
        orders,
        years=_split_arg('years'),
        months=_split_arg('months'),
        technicians=_split_arg('technicians'),
        statuses=_split_arg('statuses'),
        priorities=_split_arg('priorities'),
    )


@app.route(f'/api/reports/<{ORDER_KINDS}:kind>/summary')
@login_required
@role_required(access.ROLE_MASTER, access.ROLE_MANAGER)
def order_report_summary(kind):
    return jsonify({'ok': True, 'summary': report_service.summarize_orders(_filtered_orders(kind))})


@app.route("/api/reports/<any('work-orders', installations, payments):kind>/export")
@login_required
@role_required(access.ROLE_MASTER, access.ROLE_MANAGER)
def export_report(kind):
    if kind == 'payments':
        rows = get_container().payment_service.get_payment_history(current_user())
        builder, prefix = report_service.export_payments, 'historial_pagos'
    elif kind == 'installations':
        rows = _filtered_orders(kind)
        builder, prefix = report_service.export_installation_orders, 'reporte_instalaciones'
    else:
        rows = _filtered_orders(kind)
        builder, prefix = report_service.export_work_orders, 'reporte_soporte'

    if not rows:
        return jsonify({'ok': False, 'error': 'No hay datos para exportar'}), 400

    filename = f"{prefix}_{datetime.now().strftime('%Y-%m-%d')}.xlsx"
    return send_file(builder(rows), mimetype=XLSX_MIMETYPE, as_attachment=True, download_name=filename)


# ═══════════════════════════════════════════════════════════════════════════════
# CATÁLOGOS: PAÍSES Y CIUDADES
# ═══════════════════════════════════════════════════════════════════════════════

@app.route('/api/countries')
@login_required
def list_countries():
    return jsonify({'ok': True, 'countries': get_container().catalog_service.get_countries()})


@app.route('/api/countries', methods=['POST'])
@login_required
@verify_csrf
def create_country():
    return respond(get_container().catalog_service.save_country(get_payload(), current_user()), created=True)


@app.route('/api/countries/<country_id>', methods=['POST'])
@login_required
@verify_csrf
def update_country(country_id):
    return respond(get_container().catalog_service.save_country(get_payload(), current_user(), country_id))


@app.route('/api/countries/<country_id>/delete', methods=['POST'])
@login_required
@verify_csrf
def delete_country(country_id):
    return respond(get_container().catalog_service.delete_country(country_id, current_user()))


@app.route('/api/cities')
@login_required
def list_cities():
    return jsonify({'ok': True, 'cities': get_container().catalog_service.get_cities()})


@app.route('/api/cities', methods=['POST'])
@login_required
@verify_csrf
def create_city():
    return respond(get_container().catalog_service.save_city(get_payload(), current_user()), created=True)


@app.route('/api/cities/<city_id>', methods=['POST'])
@login_required
@verify_csrf
def update_city(city_id):
    return respond(get_container().catalog_service.save_city(get_payload(), current_user(), city_id))


@app.route('/api/cities/<city_id>/delete', methods=['POST'])
@login_required
@verify_csrf
def delete_city(city_id):
    return respond(get_container().catalog_service.delete_city(city_id, current_user()))


@app.route('/api/cities/import', methods=['POST'])
@login_required
@role_required(access.ROLE_MASTER)
@verify_csrf
def import_cities():
    upload = request.files.get('file')
    if upload is None or not upload.filename:
        return jsonify({'ok': False, 'error': 'Debe seleccionar un archivo .xlsx.'}), 400
    filename = secure_filename(upload.filename)
    if not filename.lower().endswith('.xlsx'):
        return jsonify({'ok': False, 'error': 'El archivo debe ser .xlsx.'}), 400

    fd, tmp_path = tempfile.mkstemp(suffix='.xlsx')
    os.close(fd)
    try:
        upload.save(tmp_path)
        result = get_container().catalog_service.import_cities(
            tmp_path, request.form.get('countryId'), current_user()
        )
    finally:
        os.remove(tmp_path)
    return respond(result)


# ═══════════════════════════════════════════════════════════════════════════════
# CONFIGURACIÓN P. GPS, AUDITORÍA Y BACKUPS (solo master)
# ═══════════════════════════════════════════════════════════════════════════════

@app.route('/api/settings/pgps')
@login_required
@role_required(access.ROLE_MASTER)
def get_pgps_settings():
    settings = get_container().pgps.get_settings()
    return jsonify({'ok': True, 'settings': settings.to_dict(), 'configured': settings.is_configured()})


@app.route('/api/settings/pgps', methods=['POST'])
@login_required
@role_required(access.ROLE_MASTER)
@verify_csrf
def save_pgps_settings():
    return respond(get_container().pgps.save_settings(get_payload(), current_user()))


@app.route('/api/pgps/clients')
@login_required
@role_required(access.ROLE_MASTER, access.ROLE_MANAGER, access.ROLE_ANALISTA)
def pgps_clients():
    return respond(get_container().pgps.get_clients())


@app.route('/api/audit')
@login_required
@role_required(access.ROLE_MASTER)
def audit_logs():
    audit = get_container().audit_service
    log_type = request.args.get('type')
    query = request.args.get('q')
    if log_type:
        logs = audit.get_logs_by_type(log_type)
    elif query:
        logs = audit.search_logs(query)
    else:
        logs = audit.get_all_logs()
    return jsonify({'ok': True, 'logs': logs})


@app.route('/api/backups/status')
@login_required
@role_required(access.ROLE_MASTER)
def backup_status():
    status = get_container().backup_service.get_backup_status()
    return jsonify({'ok': True, **status})


# ═══════════════════════════════════════════════════════════════════════════════
# ARRANQUE
# ═══════════════════════════════════════════════════════════════════════════════

def bootstrap(data_dir=None):
    """
    Tareas de inicio: backup diario, master inicial y plantillas globales.

    Se llama desde wsgi.py y desde la ejecución directa del módulo.
    """
    container = get_container(data_dir)
    os.makedirs(container.data_dir, exist_ok=True)
    run_startup_backup(container.backup_service)
    container.user_service.ensure_bootstrap_master()
    if container.template_service.ensure_global_templates_exist():
        logger.info("Plantillas globales creadas.")
    return container


if __name__ == "__main__":
    # En producción usar WSGI (gunicorn, waitress, etc.) con wsgi:app
    DEBUG = os.environ.get('FLASK_DEBUG', '0') == '1'
    HOST = os.environ.get('FLASK_HOST', '0.0.0.0')
    PORT = int(os.environ.get('FLASK_PORT', 5000))

    bootstrap()
    logger.info("Servidor iniciado en http://%s:%s", HOST, PORT)
    app.run(host=HOST, port=PORT, debug=DEBUG)
