# Schemas package init
"""
AllerScan Backend — Request/Response Schemas
==============================================

Pydantic v2 models for the HTTP contract, one module per area:
common (errors, health), user, family, scan, meal.
"""
