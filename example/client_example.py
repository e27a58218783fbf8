from caravo_agent import Http402Client, load_or_create_identity
import httpx

url = "https://caravo.ai/api/tools/black-forest-labs/flux.1-schnell/execute"  # Replace with any paid tool

identity = load_or_create_identity()

async def main():
    async with Http402Client(
        identity=identity,
        timeout=httpx.Timeout(60.0, read=120.0)
    ) as client:
        return await client.post(url, json={"prompt": "a lighthouse at dawn"})


async def agent_main():
    from caravo_agent import create_agent_tools

    tools = await create_agent_tools()
    try:
        print((await tools.get_wallet_info()).text)
        print((await tools.search_tools(query="image generation", per_page=3)).text)
    finally:
        await tools.aclose()


if __name__ == "__main__":
    import asyncio
    print("Wallet:", identity.address)
    response = asyncio.run(main())
    print("Response:", response.status_code, response.text)
    asyncio.run(agent_main())
