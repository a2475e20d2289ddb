"""
NIM Proxy

OpenAI-compatible chat completions API in front of NVIDIA NIM.

Components:
- resolver: Client model id -> NIM model id
- normalizer: Request validation, clamping, NIM payload
- nim_client: httpx client for NIM (buffered and streamed)
- transcoder: NIM -> OpenAI reshaping and the SSE stream state machine
- api: OpenAI-compatible endpoints
- main: App factory and server entry point
"""

__version__ = "0.1.0"
