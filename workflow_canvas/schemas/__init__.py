"""
Schemas
Workflow document models and API DTOs
"""
