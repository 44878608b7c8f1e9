"""API router subpackage for the GeoSearch backend.

Each module exposes its own APIRouter for composition in the application's
main FastAPI instance.

Submodules:
    - locations: Endpoints for listing, saving and deleting saved locations.
    - earthengine: Endpoint resolving a data layer to a tile URL template.
    - analysis: Endpoint generating the AI urban-planning narrative.
"""
