# Routes package init
"""
AllerScan Backend — API Routes Package
========================================

What:  HTTP route handlers that accept requests and return responses.

Route Inventory:
    - users.py:    POST /api/users, GET /api/users/me
    - family.py:   GET/POST /api/family, PUT/DELETE /api/family/{member_id}
    - analyze.py:  POST /api/analyze (GET answers 405)
    - scans.py:    GET /api/scans, GET/DELETE /api/scans/{scan_id}
    - ocr.py:      POST /api/ocr
    - meals.py:    POST /api/meal-suggestions, POST /api/meals/safety-check
    - health.py:   GET /health

Routes are THIN: extract request data, resolve the caller through
dependencies.get_current_user, call a service, shape the response.
"""
