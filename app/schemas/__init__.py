"""
Schemas module - Request schemas for API endpoints.

Schemas are the API contract (what the client sends); every response goes
through the envelope in app.utils.responses.
"""
