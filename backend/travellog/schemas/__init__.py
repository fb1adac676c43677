"""
Travel Log API — Request/Response Schemas
===========================================

Pydantic models defining the JSON contract of the API. They are kept apart
from the ORM models: request payloads double as the allow-list of
client-editable properties, and responses expose `api_id` as `id` while the
integer primary keys stay internal.
"""
