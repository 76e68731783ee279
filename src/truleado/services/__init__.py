"""
truleado.services

Use-case services. Each service authorizes through `rbac.resolver`, mutates via
repositories, records activity, commits, then dispatches notifications.
"""
