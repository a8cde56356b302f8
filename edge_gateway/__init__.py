"""
Edge Gateway Service
Token-authenticated path-prefix proxy and webhook relay
"""

__version__ = "1.0.0"
