"""
barberslots - availability and conflict engine for a barbershop booking site.
"""

__version__ = "0.1.0"
