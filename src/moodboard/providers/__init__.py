"""
Upstream Provider Integration

This package holds every call the moodboard service makes to a third party. Handlers never
talk to aiohttp directly; they call these functions with the shared client session.

Key Components:
- chain.py: Middleware chain for outbound requests (authorization header, metrics, debug)
- pinterest.py: OAuth authorization URL, code exchange, board and pin listing
- unsplash.py: Photo search with the server-held access key
- images.py: Fetch of arbitrary image URLs for the browser
- gemini.py: Aesthetic analysis of an image with a Gemini model
- errors.py: ConfigurationException and ProviderException

No call here is retried. A failure is raised once and the handler decides what the browser
sees.
"""
