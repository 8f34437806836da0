# src/services/rides_api/__init__.py
"""
HTTP API сервиса поездок.
"""
