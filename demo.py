#!/usr/bin/env python3
"""
Demo script for the Expert Panel Orchestrator.

This script puts one question to the configured panel and prints the transcript as
answers arrive, without needing the API server.

Usage:
    python demo.py "Should we rebalance towards bonds this quarter?"
    python demo.py --mock "How risky is a 60/40 portfolio?"
    python demo.py --mock --pacing 0 "Quick smoke test"
"""

import sys
import asyncio
import argparse
from pathlib import Path
from datetime import datetime

import httpx

# Add paths
sys.path.insert(0, str(Path(__file__).parent))

from dotenv import load_dotenv

load_dotenv(Path(__file__).parent / ".env")

from agents import AgentRegistry, Dispatcher, DispatchPolicy
from config import Config, Credential
from core.gateway import Gateway
from core.types import SYSTEM_SENDER, TranscriptEntry
from storage.transcript import Transcript


MOCK_ENDPOINT = "https://mock.invalid/v1/chat-messages"


def mock_credentials(config: Config) -> dict:
    """One distinct fake secret per roster position, so every agent gets its own reply."""
    return {
        spec.credential_ref: Credential(secret=f"mock-{index}", endpoint=MOCK_ENDPOINT)
        for index, spec in enumerate(config.agents)
    }


class MockBackendClient:
    """
    Mock backend for demo without credentials.

    Each credential answers with a different reply shape; the second credential is rate
    limited on its first call so the retry path shows up in the transcript.
    """

    def __init__(self):
        self.calls = {}

    async def post(self, url, json=None, headers=None):
        secret = (headers or {}).get("Authorization", "").replace("Bearer ", "")
        self.calls[secret] = self.calls.get(secret, 0) + 1
        request = httpx.Request("POST", url)
        query = (json or {}).get("query", "")

        if secret == "mock-1" and self.calls[secret] == 1:
            return httpx.Response(
                429,
                json={"code": "too_many_requests", "message": "Rate limit exceeded"},
                request=request,
            )

        if secret == "mock-0":
            body = {"answer": f"From a valuation angle: '{query}' depends on current multiples.",
                    "conversation_id": "demo-conv", "message_id": "demo-msg-0"}
        elif secret == "mock-1":
            body = {"message": {"content": f"Risk view: stress-test '{query}' before acting."}}
        else:
            body = {"text": f"Strategy view: phase any change to '{query}' over several months."}
        return httpx.Response(200, json=body, request=request)

    async def aclose(self):
        pass


def print_entry(entry: TranscriptEntry) -> None:
    icon = "⚠️ " if entry.sender == SYSTEM_SENDER else "💬"
    print(f"   {icon} [{entry.timestamp:%H:%M:%S}] {entry.sender}: {entry.content}")


async def run_demo(query: str, use_mock: bool = False, pacing: float = None):
    """Run the expert panel demo."""

    print("\n" + "="*60)
    print("🧑‍⚖️ EXPERT PANEL ORCHESTRATOR DEMO")
    print("="*60)
    print(f"\n📝 Query: {query}\n")

    config = Config.from_env()
    client = None

    if use_mock or not config.credentials:
        print("ℹ️  Using mock backend (no credentials found)\n")
        config.credentials = mock_credentials(config)
        config.backoff_base_seconds = 1.0
        client = MockBackendClient()
    else:
        print(f"✅ Using backend credentials for {len(config.credentials)} agent(s)\n")

    if pacing is not None:
        config.pacing_seconds = pacing

    registry = AgentRegistry.from_config(config)
    gateway = Gateway(config, client=client)
    transcript = Transcript()
    transcript.subscribe(print_entry)

    print("🤖 Panel:")
    for agent in registry.list_agents():
        status = "✓" if agent.active else "–"
        print(f"   {status} {agent.name} ({agent.expertise})")
    print()

    dispatcher = Dispatcher(
        registry=registry,
        gateway=gateway,
        transcript=transcript,
        policy=DispatchPolicy.from_config(config),
        user_name=config.user_name,
    )

    print("🚀 Dispatching...\n")
    start_time = datetime.now()
    try:
        result = await dispatcher.dispatch(query)
    finally:
        await gateway.aclose()
    elapsed = (datetime.now() - start_time).total_seconds()

    print(f"\n✅ Round complete in {elapsed:.1f}s\n")
    print("-"*60)

    if result.success:
        print("\n📊 OUTCOMES\n")
        for outcome in result.outcomes:
            mark = "✅" if outcome.success else "❌"
            print(f"   {mark} {outcome.agent.name}: {outcome.state.value} "
                  f"after {outcome.attempts} attempt(s)")
    else:
        print(f"❌ Error: {result.error}")

    print("\n" + "="*60)
    print("Demo complete!")
    print("="*60 + "\n")


def main():
    parser = argparse.ArgumentParser(description="Expert Panel Orchestrator Demo")
    parser.add_argument("query", nargs="?", default="How should a mid-size company hedge currency risk?",
                        help="Question to put to the panel")
    parser.add_argument("--mock", action="store_true", help="Use mock backend (no credentials needed)")
    parser.add_argument("--pacing", type=float, default=None, help="Seconds to wait between agents")
    args = parser.parse_args()

    asyncio.run(run_demo(args.query, args.mock, args.pacing))


if __name__ == "__main__":
    main()
