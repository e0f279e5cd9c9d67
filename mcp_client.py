# mcp_client.py
# Smoke client for a server started with MCP_TRANSPORT=streamable-http.
import asyncio
import json
import os
import sys

from mcp import ClientSession
from mcp.client.streamable_http import streamablehttp_client

TOOLS = ("analyze_node_version", "run_predeploy_validation", "run_build_optimization")


async def main(project_path: str):
    mcp_url = os.environ.get("MCP_URL", "http://localhost:8000/mcp")
    headers = {}

    async with streamablehttp_client(mcp_url, headers, timeout=120, terminate_on_close=False) as (
        read_stream,
        write_stream,
        _,
    ):
        async with ClientSession(read_stream, write_stream) as session:
            await session.initialize()

            tool_result = await session.list_tools()
            print("Available tools:")
            for tool in tool_result.tools:
                print(f"  - {tool.name}")

            for name in TOOLS:
                print(f"\n{name} {project_path}")
                result = await session.call_tool(name, {"project_path": project_path})
                for content in result.content:
                    if content.type != "text":
                        continue
                    data = json.loads(content.text)
                    if not data.get("success"):
                        print(f"  error: {data.get('error')}")
                        continue
                    report = data["report"]
                    print(f"  score={report['score']} canProceed={report['canProceed']}")
                    for finding in report["findings"]:
                        print(f"  [{finding['status']:>4}] {finding['id']}: {finding['message']}")


if __name__ == "__main__":
    asyncio.run(main(sys.argv[1] if len(sys.argv) > 1 else os.getcwd()))
