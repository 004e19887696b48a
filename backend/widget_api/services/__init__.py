# Services package init
"""
Widget API Backend: Services Layer
=====================================

What:  Business rules between routes (HTTP) and repositories (SQL).
How:   Services receive the request's AsyncSession and the authenticated
       Principal, enforce ownership, optimistic locking and list validation,
       and return response schemas.

Service Inventory:
    - WidgetService: create, get, list, update and delete owner-scoped widgets
"""
