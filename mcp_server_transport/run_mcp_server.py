"""Entrypoint for running the Singapore transport MCP server.

Usage:
  python run_mcp_server.py                 # streamable HTTP on 127.0.0.1:8765/mcp
  python run_mcp_server.py --stdio

Or via MCP host config (e.g., Claude Desktop) pointing to this script with --stdio.
"""
from mcp_tools_transport.mcp.server import main

if __name__ == "__main__":
    main()
