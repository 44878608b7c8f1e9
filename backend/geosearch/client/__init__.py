"""Client-side map session for GeoSearch.

Submodules:
    - session: MapSession, the state machine behind the map view.
    - state: Immutable value types for viewport, selection and layers.
    - overlay: Tile overlays and the MapHost they attach to.
    - gateways: Collaborator protocols and their httpx implementations.
    - notifications: User-visible notices.
"""
