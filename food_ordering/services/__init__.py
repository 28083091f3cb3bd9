"""
                        Services Module

Business logic behind the HTTP routes. Each service takes the request's
database session at construction.

Services:
    - credentials: identity registration, sign-in, secret hashing
    - tokens: signed session tokens
    - guard: bearer-token route protection
    - ledger: order placement and the status state machine
    - queries: order listings
    - catalog: food item CRUD
    - storage: uploaded image files
    - ledger_export: Excel export of ledger events (Celery worker side)
"""
