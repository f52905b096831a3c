"""
Moodboard - Pinterest and Unsplash Backend for a Mood Board Client

This package implements the small server behind a mood board web client. It keeps every
provider credential on the server and gives the browser a handful of JSON endpoints.

Key Components:
- app: Web application layer with request handlers and server configuration
- providers: Calls to Pinterest, Unsplash, arbitrary image hosts and Gemini
- model: Pydantic models for image records, OAuth popup messages, analysis results and health

Architecture Overview:
1. Pinterest Connection:
   - The client asks for an authorization URL and opens it in a popup
   - The callback exchanges the code and stores the access token in an HTTP-only cookie
   - The popup reports the outcome to the opener with postMessage
2. Content Proxies:
   - Board and pin listings use the token cookie
   - Photo search uses the server's Unsplash key
   - Images are fetched server-side and returned base64 encoded
3. Image Analysis:
   - Gemini describes the palette, keywords and mood of an image

The service keeps no server-side session state. Everything a request needs arrives with it.
"""
