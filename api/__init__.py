"""
FastAPI RESTful API for the book service.

This module provides:
- CRUD endpoints for the book resource under /book
- A uniform JSON response envelope
- Health reporting for the active storage backend
"""
