"""GeoSearch: address search, saved locations and satellite data layers.

This package contains the FastAPI backend and the client-side map session of
the GeoSearch application.

- Saved locations are persisted in PostgreSQL and
  listed newest first
- Data layers (temperature, air quality, precipitation, land use, human
  activity) are rendered by Earth Engine; the backend hands out XYZ tile URL
  templates
- AI urban-planning narratives are written by a Gemini model
- The client MapSession owns viewport, selection, overlay lifecycle and
  analysis state, and reaches the backend through httpx gateways

See the module docstrings for details on architecture and usage.
"""
