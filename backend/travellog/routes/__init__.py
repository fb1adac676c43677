# Routes package init
"""
Travel Log API — Routes Package
=================================

Route Inventory:
    - health.py:    GET  /api, GET /health
    - auth.py:      POST /api/auth
    - users.py:     /api/users and /api/users/{id}
    - trips.py:     /api/trips and /api/trips/{id}
    - places.py:    /api/places and /api/places/{id}
    - realtime.py:  WS   /ws

Routes stay thin: parse the request, call a service, shape the response.
Every successful write schedules a stats broadcast as a background task.
"""
