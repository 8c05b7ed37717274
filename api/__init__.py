"""
FastAPI RESTful API for book records.

This package provides:
- CRUD endpoints for books under /api/books
- Bearer token authentication with USER and ADMIN roles
- Pluggable book storage (MongoDB or in-memory)
"""
