# ==============================================================================
# CONFIGURACIÓN DE LA APLICACIÓN
# ==============================================================================
# Todos los valores se leen de variables de entorno con un default de desarrollo.
# En producción DEBEN definirse al menos:
#   export SGI_SECRET_KEY="clave_larga_y_aleatoria"
#   export SGI_PRODUCTION=1
# ==============================================================================

import os

BASE = os.path.dirname(os.path.abspath(__file__))


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'si', 'sí')


# ═══════════════════════════════════════════════════════════════════════════
# MODO PRODUCCIÓN
# ═══════════════════════════════════════════════════════════════════════════
PRODUCTION_MODE = _env_flag('SGI_PRODUCTION')

# ═══════════════════════════════════════════════════════════════════════════
# SESIONES
# ═══════════════════════════════════════════════════════════════════════════
DEFAULT_SECRET = 'sgi_gps_dev_secret_key_change_in_production'
SECRET_KEY = os.environ.get('SGI_SECRET_KEY')

# 7 días de sesión persistente
SESSION_LIFETIME = 60 * 60 * 24 * 7

# ═══════════════════════════════════════════════════════════════════════════
# DATOS Y NEGOCIO
# ═══════════════════════════════════════════════════════════════════════════
DATA_DIR = os.environ.get('SGI_DATA_DIR') or os.path.join(BASE, 'data')

# Zona horaria usada para calcular "hoy" en vencimientos y recordatorios
TIMEZONE = os.environ.get('SGI_TIMEZONE', 'America/Guayaquil')

# URL pública usada en los enlaces que se envían a los técnicos
PUBLIC_URL = os.environ.get('SGI_PUBLIC_URL', 'https://sgi.gpsplataforma.net').rstrip('/')

# Timeout (segundos) para llamadas HTTP salientes (P. GPS y notificaciones)
HTTP_TIMEOUT = float(os.environ.get('SGI_HTTP_TIMEOUT', '15'))

# Cuenta master inicial (solo se crea si no existe ningún usuario)
BOOTSTRAP_USER = os.environ.get('SGI_BOOTSTRAP_USER', 'master')
BOOTSTRAP_PASSWORD = os.environ.get('SGI_BOOTSTRAP_PASSWORD')
BOOTSTRAP_EMAIL = os.environ.get('SGI_BOOTSTRAP_EMAIL', 'master@sgi.local')

# ═══════════════════════════════════════════════════════════════════════════
# PROFILING
# ═══════════════════════════════════════════════════════════════════════════
ENABLE_PROFILING = _env_flag('SGI_ENABLE_PROFILING', default=True)
