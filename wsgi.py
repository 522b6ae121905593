# ==============================================================================
# PUNTO DE ENTRADA WSGI
# ==============================================================================
#   gunicorn wsgi:app --bind 0.0.0.0:$PORT
#
# Variables mínimas en producción: SGI_SECRET_KEY, SGI_PRODUCTION=1,
# SGI_DATA_DIR y SGI_BOOTSTRAP_PASSWORD (solo para el primer arranque).
# ==============================================================================

from sgi_gps.main import app, bootstrap

bootstrap()

if __name__ == '__main__':
    app.run(host='0.0.0.0', port=5000)
