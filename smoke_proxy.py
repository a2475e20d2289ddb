#!/usr/bin/env python3
"""
Smoke checks for a running NIM proxy.

Checks:
1. Health check
2. Model listing
3. Simple chat completion
4. Streaming chat completion (<think> tags balanced)

Usage:
    python smoke_proxy.py [--url http://localhost:3000] [--model gpt-4o]
"""

import argparse
import asyncio
import json
import sys

import httpx


async def check_health(url: str) -> bool:
    """Check health endpoint."""
    print("\n=== Health ===")

    async with httpx.AsyncClient() as client:
        try:
            resp = await client.get(f"{url}/health")
            resp.raise_for_status()
            data = resp.json()
            print(f"Status: {data.get('status')}")
            print(f"Reasoning display: {data.get('reasoning_display')}")
            print(f"Thinking mode: {data.get('thinking_mode')}")
            return data.get("status") == "ok"
        except httpx.HTTPError as e:
            print(f"Health check failed: {e}")
            return False


async def check_models(url: str) -> bool:
    """Check models endpoint."""
    print("\n=== Models ===")

    async with httpx.AsyncClient() as client:
        try:
            resp = await client.get(f"{url}/v1/models")
            resp.raise_for_status()
            models = resp.json().get("data", [])
            print(f"Found {len(models)} models:")
            for m in models:
                print(f"  - {m.get('id')}")
            return bool(models)
        except httpx.HTTPError as e:
            print(f"Models check failed: {e}")
            return False


async def check_chat(url: str, model: str) -> bool:
    """Check non-streaming chat completion."""
    print("\n=== Chat ===")

    async with httpx.AsyncClient(timeout=60.0) as client:
        try:
            resp = await client.post(
                f"{url}/v1/chat/completions",
                json={
                    "model": model,
                    "messages": [
                        {"role": "user", "content": "Say 'Hello from the proxy' and nothing else."}
                    ],
                    "stream": False,
                },
            )
            resp.raise_for_status()
            data = resp.json()
            content = data["choices"][0]["message"]["content"]
            print(f"Response: {content[:200]}")
            if data.get("model") != model:
                print(f"Model id leaked: {data.get('model')}")
                return False
            return True
        except (httpx.HTTPError, KeyError, IndexError) as e:
            print(f"Chat check failed: {e}")
            return False


async def check_streaming_chat(url: str, model: str) -> bool:
    """Check streaming chat completion."""
    print("\n=== Streaming Chat ===")

    async with httpx.AsyncClient(timeout=60.0) as client:
        try:
            async with client.stream(
                "POST",
                f"{url}/v1/chat/completions",
                json={
                    "model": model,
                    "messages": [
                        {"role": "user", "content": "Count from 1 to 5."}
                    ],
                    "stream": True,
                },
            ) as resp:
                resp.raise_for_status()

                content_parts = []
                saw_done = False
                async for line in resp.aiter_lines():
                    if not line.startswith("data: "):
                        continue
                    data_str = line[6:]
                    if data_str == "[DONE]":
                        saw_done = True
                        continue
                    try:
                        data = json.loads(data_str)
                    except json.JSONDecodeError:
                        print(f"\n[raw frame: {data_str[:80]}]")
                        continue
                    delta = data.get("choices", [{}])[0].get("delta", {})
                    if delta.get("content"):
                        content_parts.append(delta["content"])
                        print(delta["content"], end="", flush=True)

                print()
                text = "".join(content_parts)
                print(f"Total chunks: {len(content_parts)}, [DONE] seen: {saw_done}")
                if text.count("<think>") != text.count("</think>"):
                    print("Unbalanced <think> tags")
                    return False
                return saw_done
        except httpx.HTTPError as e:
            print(f"Streaming check failed: {e}")
            return False


async def main():
    parser = argparse.ArgumentParser(description="Smoke-check a running NIM proxy")
    parser.add_argument("--url", default="http://localhost:3000", help="Proxy base URL")
    parser.add_argument("--model", default="gpt-4o", help="Client model id to request")
    args = parser.parse_args()

    print("=" * 60)
    print("NIM Proxy Smoke Checks")
    print("=" * 60)
    print(f"Target: {args.url}")

    results = {}

    results["health"] = await check_health(args.url)

    if not results["health"]:
        print("\nProxy not running. Start with: nimproxy")
        sys.exit(1)

    results["models"] = await check_models(args.url)
    results["chat"] = await check_chat(args.url, args.model)
    results["streaming"] = await check_streaming_chat(args.url, args.model)

    # Summary
    print("\n" + "=" * 60)
    print("Results:")
    print("=" * 60)
    for name, passed in results.items():
        status = "PASS" if passed else "FAIL"
        print(f"  {name}: {status}")

    all_passed = all(results.values())
    print("=" * 60)
    print(f"Overall: {'ALL PASSED' if all_passed else 'SOME FAILED'}")

    sys.exit(0 if all_passed else 1)


if __name__ == "__main__":
    asyncio.run(main())
