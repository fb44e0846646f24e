"""
ImmoAlert: alertas inmobiliarias por WhatsApp a partir de grupos de Facebook.
"""

__version__ = "0.1.0"
