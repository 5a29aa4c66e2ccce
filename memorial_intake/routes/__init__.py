"""
Routes package

Each module exposes `router`; server.create_app mounts them under /api.
"""
