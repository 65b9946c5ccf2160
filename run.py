#!/usr/bin/env python3
"""
Run the Expert Panel Orchestrator API server.

Usage:
    python run.py                    # Run on default port 8000
    python run.py --port 8080        # Run on custom port
    python run.py --reload           # Run with hot reload (dev mode)

Environment Variables (set in .env file or export):
    DIFY_API_KEY_A=app-...          # Credential for Expert A
    DIFY_API_KEY_B=app-...          # Credential for Expert B
    DIFY_API_KEY_C=app-...          # Credential for Expert C
    PACING_SECONDS=3                # Optional: wait between agents
    MAX_BACKOFF_SECONDS=60          # Optional: ceiling for Retry-After waits

Quick Start:
    1. Create a .env file with your backend credentials
    2. Install dependencies: pip install -e .
    3. Run the server: python run.py
    4. Open http://localhost:8000/docs in your browser
"""

import sys
import argparse
import logging
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent))

# Load environment variables from .env file if it exists
from dotenv import load_dotenv

env_file = Path(__file__).parent / ".env"
if env_file.exists():
    load_dotenv(env_file)
    print(f"✅ Loaded .env from {env_file}")

from config import Config


def main():
    parser = argparse.ArgumentParser(description="Run the Expert Panel Orchestrator API")
    parser.add_argument("--host", default=None, help="Host to bind to")
    parser.add_argument("--port", type=int, default=None, help="Port to bind to")
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload")
    parser.add_argument("--log-level", default="INFO", help="Python logging level")
    args = parser.parse_args()

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = Config.from_env()
    host = args.host or config.api_host
    port = args.port or config.api_port

    # Check for backend credentials
    missing = config.missing_credentials()
    if missing and len(missing) == len([a for a in config.agents if a.active]):
        print("⚠️  Warning: No backend credential found. Every agent will report a configuration error.")
        print("   Set DIFY_API_KEY_A/B/C (or the credential_ref names in PANEL_AGENTS).")
    elif missing:
        print(f"ℹ️  Note: no credential for {', '.join(missing)}. Those agents will report an error.")
    else:
        print(f"✅ {len(config.agents)} agents configured")

    roster = "\n".join(f"║  🧑‍💼 {a.name:<18} - {a.expertise:<38}║" for a in config.agents)
    print(f"""
╔══════════════════════════════════════════════════════════════╗
║         Expert Panel Orchestrator                            ║
╠══════════════════════════════════════════════════════════════╣
{roster}
╚══════════════════════════════════════════════════════════════╝

🚀 Starting server at http://{host}:{port}
📖 API docs at http://localhost:{port}/docs
⏱️  Pacing {config.pacing_seconds:g}s, backoff base {config.backoff_base_seconds:g}s, {config.max_attempts} attempts
""")

    import uvicorn
    uvicorn.run(
        "api.main:app",
        host=host,
        port=port,
        reload=args.reload
    )


if __name__ == "__main__":
    main()
