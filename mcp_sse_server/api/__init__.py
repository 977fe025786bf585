"""
HTTP API
========

FastAPI application exposing the MCP protocol over SSE and plain HTTP.
"""
