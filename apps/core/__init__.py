"""
Core application.

Shared infrastructure for every Teamflow app:
- Identifier allocation for prefixed record ids
- Entity store helpers for JSON array lookups and store error mapping
- Access-Control Gate and session authentication
- Exception handling, structured logging and request ids
"""
