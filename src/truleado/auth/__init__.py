"""
truleado.auth

Authentication package: JWT validation and the request `Actor`.
"""
