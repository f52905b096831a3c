"""
Moodboard Application Layer

This package implements the web application layer for the moodboard service using the aiohttp
framework. It provides handlers for the Pinterest OAuth flow, the provider proxies, image
analysis and internal health checks.

Key Components:
- cli.py: Entry point for running the application
- server.py: Web server configuration and middleware setup
- config.py: Configuration management using Pydantic settings
- handlers/: Request handlers for different endpoints
- tasks.py: Background task for health monitoring
- cors.py: CORS handling for cross-origin requests
- metrics.py: Metrics client abstraction
- templates/: The OAuth popup result page

The application uses several middleware layers:
- CORS middleware for handling cross-origin requests
- Statsd middleware for metrics collection
- Sentry middleware for error reporting
"""
