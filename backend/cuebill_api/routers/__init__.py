"""
API routers. Each area lives in its own package with a ``routes.py``.
"""
