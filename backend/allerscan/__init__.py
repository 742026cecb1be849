"""
AllerScan Backend — Application Package Initializer
====================================================

What: Marks the `allerscan` directory as a Python package.
Who:  Imported by Alembic, pytest, and uvicorn (`uvicorn allerscan.main:app`).

Architecture Note:
    The backend follows a layered architecture:

    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │         Services (Business Logic)   │  ← Family CRUD, scans, meals, OCR
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← Async SQLAlchemy sessions
    └─────────────────────────────────────┘

    External collaborators (Gemini for allergen classification and meal
    ideas, Tesseract for label OCR) are reached only from the services layer.
"""

__version__ = "1.0.0"
