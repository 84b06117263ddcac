# ==============================================================================
# APP POS - Motor de venta de la caja
# ==============================================================================
# Carrito, precios, comisiones, validación de pago, borradores y envío
# con cola offline. Ver app_container.py para armar los servicios.
# ==============================================================================

__version__ = '0.1.0'
