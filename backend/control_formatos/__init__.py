"""
Control de Formatos (SGV)

Registro de pedidos de imprenta, numeración de formatos y control de
talonarios.
"""

__version__ = "1.0.0"
