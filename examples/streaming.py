"""
misanthropic - Streaming Example

Demonstrates streaming responses for real-time output.
"""

import asyncio
import logging
import sys

from misanthropic import Client, StreamError, assemble_message


PROMPT = {
    "model": "claude-3-5-sonnet-20240620",
    "max_tokens": 512,
    "messages": [{"role": "user", "content": "Tell me a short story about a robot"}],
}

WEATHER_TOOL = {
    "name": "get_weather",
    "description": "Get the current weather in a given location",
    "input_schema": {
        "type": "object",
        "properties": {"location": {"type": "string"}},
        "required": ["location"],
    },
}


async def main():
    logging.basicConfig(level=logging.WARNING)

    async with Client() as client:
        # ============================================================
        # Simple Streaming
        # ============================================================
        print("=== Simple Streaming ===\n")

        sys.stdout.write("Response: ")
        async with await client.stream(PROMPT) as stream:
            async for text in stream.filter_transient_errors().text():
                if isinstance(text, StreamError):
                    raise text
                sys.stdout.write(text)
                sys.stdout.flush()
        print("\n[Stream complete]\n")

        # ============================================================
        # Raw Events
        # ============================================================
        print("=== Raw Events ===\n")

        async with await client.stream(PROMPT) as stream:
            async for item in stream:
                print(f"{type(item).__name__}")

        # ============================================================
        # Assembling a Tool Call
        # ============================================================
        print("\n=== Assembled Tool Call ===\n")

        stream = await client.stream({
            **PROMPT,
            "tools": [WEATHER_TOOL],
            "messages": [{"role": "user", "content": "What's the weather in Paris?"}],
        })
        message = await assemble_message(stream.filter_transient_errors())

        print(message)
        tool_use = message.tool_use()
        if tool_use:
            print(f"\n[Tool call: {tool_use.name}({tool_use.input})]")
        print(f"[Stop reason: {message.stop_reason}, usage: {message.usage}]")


if __name__ == "__main__":
    asyncio.run(main())
