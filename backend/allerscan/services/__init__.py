# Services package init
"""
AllerScan Backend — Services Layer
====================================

What:  Business logic layer sitting between routes (HTTP) and database (persistence).
How:   Services receive the request's session and the caller, apply business
       rules and return response schemas. Routes stay thin.

Service Inventory:
    - LLMService (abstract):  Interface for the JSON-returning language model
    - GeminiService:          Google Gemini implementation with retry + circuit breaker
    - allergen_matcher:       Pure cross-referencing and risk escalation functions
    - prompts:                System instructions and prompt builders
    - UserService:            Account registration and lookup
    - FamilyService:          Default family, members and their allergies
    - ScanService:            Analyze → cross-reference → persist, scan history
    - MealService:            AI meal suggestions and meal safety checks
    - FileService:            Upload validation with Pillow
    - OcrService:             Tesseract text extraction and cleanup
"""
