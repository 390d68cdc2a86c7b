"""
Server modules for Scout Map application.

This package contains FastAPI router modules for handling API endpoints,
the session registry, and server-sent event broadcasting.

Author: Matthew Picone (mail@matthewpicone.com)
Date: 2026-01-12
"""
