"""
CrowdShield - Event safety incident reporting.
"""

__version__ = "0.1.0"
