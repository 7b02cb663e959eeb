#!/usr/bin/env python3
"""
PingStream - Network diagnostics over HTTP
Entry point: configures logging and runs the Flask app.
"""

import argparse
import logging

import config
import server


def main():
    parser = argparse.ArgumentParser(description="PingStream - Network diagnostics server")
    parser.add_argument("--host", default="0.0.0.0", help="Host to bind to")
    parser.add_argument("--port", type=int, default=config.PORT, help="Port to bind to")
    parser.add_argument("--debug", action="store_true", default=config.DEBUG, help="Enable Flask debug mode")
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, config.LOG_LEVEL, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    print(f"Starting PingStream server on http://{args.host}:{args.port}")
    print(f"ping available: {config.PING_AVAILABLE}")
    print(f"traceroute available: {config.TRACEROUTE_AVAILABLE}")
    print(f"API key enabled: {bool(config.API_KEY)}")
    server.socketio.run(
        server.app,
        host=args.host,
        port=args.port,
        debug=args.debug,
        allow_unsafe_werkzeug=args.debug,
    )


if __name__ == "__main__":
    main()
