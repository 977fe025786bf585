"""
MCP SSE Server
==============

A Model Context Protocol (MCP) server that answers JSON-RPC tool calls over two
transports at once: a long-lived Server-Sent Events stream and plain HTTP.

This package provides:
- MCP protocol dispatch (initialize, tools/list, tools/call, notifications)
- A tool registry that external tool logic plugs into
- SSE session management with keep-alive and dual delivery
- FastAPI endpoints, configuration and structured logging
"""

__version__ = "1.0.0"
__author__ = "MCP SSE Server Team"
