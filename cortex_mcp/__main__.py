from cortex_mcp.main import run

run()
