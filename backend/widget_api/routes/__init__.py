# Routes package init
"""
Widget API Backend: API Routes Package
=========================================

Route Inventory:
    - widgets.py: POST/GET/PUT/DELETE /api/widgets[/{widget_id}]
    - health.py:  GET /health (no authentication)

Routes stay thin: extract parameters, resolve the principal and session,
call the service, set status codes and headers. Business rules live in
widget_api.services.
"""
