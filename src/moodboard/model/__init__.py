"""
Data Models

This package defines the request-scoped data structures of the moodboard service using
Pydantic. Nothing here is persisted; every model lives for at most one request, or for as
long as the browser keeps the value.

Key Models:
- records.py: Tagged union of Unsplash photos and Pinterest pins with a shared card projection
- messages.py: Typed message contract posted from the OAuth popup to its opener
- analysis.py: Palette, keywords and description returned by the image analysis
- health.py: Health gauge backing the readiness check
"""
