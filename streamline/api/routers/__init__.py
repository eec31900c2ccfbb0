"""Catalog REST resources.

Each module exposes ``build_router(...)`` returning an `APIRouter` bound to its
collaborators; the bootstrap mounts them under ``/api``.
"""
