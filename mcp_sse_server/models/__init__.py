"""
Data Models
===========

Pydantic models shared by the HTTP layer.
"""
