# ==============================================================================
# VALIDACIONES DE FORMULARIOS
# ==============================================================================
# Helpers compartidos por los servicios para validar y normalizar los datos
# que llegan de las rutas (JSON o form). Cada helper lanza ValidationError con
# un mensaje en español listo para mostrar al usuario.
# ==============================================================================

import math
import re
from typing import Iterable, Optional
from urllib.parse import urlparse

from sgi_gps.services import billing


EMAIL_RE = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')


class ValidationError(ValueError):
    """Dato de formulario inválido."""
    pass


def text(data: dict, key: str) -> str:
    value = data.get(key)
    if value is None:
        return ''
    return str(value).strip()


def required_text(data: dict, key: str, message: str) -> str:
    value = text(data, key)
    if not value:
        raise ValidationError(message)
    return value


def choice(data: dict, key: str, choices: Iterable[str], message: str, required: bool = True) -> Optional[str]:
    value = text(data, key)
    if not value and not required:
        return None
    if value not in choices:
        raise ValidationError(message)
    return value


def number(
    data: dict,
    key: str,
    message: str = 'Debe ser un número',
    minimum: float = None,
    maximum: float = None,
    positive: bool = False,
    required: bool = False
) -> Optional[float]:
    """
    Convierte un campo numérico (acepta texto).

    Args:
        minimum: Valor mínimo permitido (inclusive)
        maximum: Valor máximo permitido (inclusive)
        positive: Exige > 0
        required: Exige que el campo venga informado

    Returns:
        float o None si está vacío y no es requerido
    """
    raw = data.get(key)
    if raw is None or raw == '':
        if required:
            raise ValidationError(message)
        return None
    if isinstance(raw, bool):
        raise ValidationError(message)
    try:
        value = float(raw)
    except (TypeError, ValueError, OverflowError):
        raise ValidationError(message)
    if not math.isfinite(value):
        raise ValidationError(message)
    if positive and value <= 0:
        raise ValidationError(message)
    if minimum is not None and value < minimum:
        raise ValidationError(message)
    if maximum is not None and value > maximum:
        raise ValidationError(message)
    return value


def integer(
    data: dict,
    key: str,
    message: str,
    minimum: int = None,
    maximum: int = None,
    required: bool = False
) -> Optional[int]:
    value = number(data, key, message, minimum=minimum, maximum=maximum, required=required)
    if value is None:
        return None
    if value != int(value):
        raise ValidationError(message)
    return int(value)


def iso_date(data: dict, key: str, message: str, required: bool = False) -> Optional[str]:
    """Fecha ISO 'YYYY-MM-DD' (acepta timestamps completos)."""
    raw = data.get(key)
    if raw is None or raw == '':
        if required:
            raise ValidationError(message)
        return None
    parsed = billing.parse_date(raw)
    if parsed is None:
        raise ValidationError(message)
    return parsed.isoformat()


def boolean(data: dict, key: str, default: bool = False) -> bool:
    raw = data.get(key)
    if raw is None or raw == '':
        return default
    if isinstance(raw, bool):
        return raw
    return str(raw).strip().lower() in ('1', 'true', 'on', 'si', 'sí', 'yes')


def is_email(value: str) -> bool:
    return bool(EMAIL_RE.match(value or ''))


def is_url(value: str) -> bool:
    parsed = urlparse(value or '')
    return parsed.scheme in ('http', 'https') and bool(parsed.netloc)
