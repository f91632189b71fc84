"""
Pydantic schema definitions for API payloads.

Schemas are separated from the ORM models in ``app.models`` to decouple
the camelCase API representation from persistence.
"""
