"""
School Management API
Multi-tenant backend for schools: sessions, terms, classes, subjects,
teachers, students, leadership and announcements.

Architecture:
- PostgreSQL: every tenant's data, scoped by school_id
- FastAPI: REST endpoints under /api/v1
- JWT: access token in the Authorization header, refresh token in a cookie
"""

__version__ = "1.0.0"
