"""BaruLogix API schemas.

Pydantic models for request/response validation, one module per router.
"""
