from mcp_sse_server.api.main import run_server

if __name__ == "__main__":
    run_server()
