# ==============================================================================
# SGI GPS - Sistema de gestión para proveedores de rastreo satelital
# ==============================================================================
# Clientes, unidades (vehículos rastreados), cobros mensuales o por contrato,
# recordatorios de pago, órdenes de soporte e instalación, e integración con
# la plataforma externa de dispositivos "P. GPS".
# ==============================================================================

__version__ = '1.0.0'
