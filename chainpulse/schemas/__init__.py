"""
Schemas.

records: in-process records shared by the durable and in-memory backends.
payloads: pydantic models validating ingestion input.
"""
