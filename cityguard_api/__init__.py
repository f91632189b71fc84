"""
Top‑level package for the CityGuard API.

All functionality lives in submodules under ``app``; import the ASGI
application as ``cityguard_api.app.main:app``.
"""

__all__ = []
