"""
Cortex Agent MCP server.

Exposes Snowflake Cortex Agents (Cortex Search and Cortex Analyst) as a Model
Context Protocol tool over stdio.
"""

__version__ = "1.0.0"
