# Services package init
"""
Travel Log API — Services Layer
=================================

Service Inventory:
    - query_pipeline:  pagination, sorting, related counts and joined
                       properties shared by the list endpoints
    - AuthService:     password hashing, token issuance and verification
    - UserService, TripService, PlaceService:
                       CRUD with uniqueness checks and cascading deletes
    - StatsBroadcaster: pushes entity counts to WebSocket clients
"""
