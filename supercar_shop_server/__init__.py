"""Supercar shop MCP server: catalog, cart, reviews and checkout over a REST API or SQLite."""

__version__ = "0.1.0"
