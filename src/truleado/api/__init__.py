"""
truleado.api

HTTP surface: app factory, dependencies, error mapping and `/v1` routers.
"""
