"""
Test Suite
==========

Test suite matching the mcp_sse_server/ package structure.

Test Categories:
- unit: Protocol decoding, dispatch, tool registry, SSE sessions and store
- integration: HTTP and SSE transports through the FastAPI application
"""
