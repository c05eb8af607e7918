#!/usr/bin/env python3
"""
Launch script for the UTM Telemetry Converter backend.

Usage:
    python run_server.py [data_folder] [--output OUTPUT] [--port PORT] [--host HOST]

Examples:
    python run_server.py                      # Use default ./data/logs folder
    python run_server.py /path/to/tlogs       # Use custom folder
    python run_server.py logs --output utm    # Write converted files to ./utm
"""

import argparse
import os
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent))


def main():
    parser = argparse.ArgumentParser(description="UTM Telemetry Converter Server")
    parser.add_argument(
        "data_folder",
        nargs="?",
        default="./data/logs",
        help="Path to folder containing telemetry logs (default: ./data/logs)"
    )
    parser.add_argument(
        "--output", "-o",
        default=None,
        help="Folder for converted UTM files (default: <data_folder>/utm)"
    )
    parser.add_argument(
        "--port", "-p",
        type=int,
        default=8000,
        help="Port to run server on (default: 8000)"
    )
    parser.add_argument(
        "--host", "-H",
        default="127.0.0.1",
        help="Host to bind to (default: 127.0.0.1, use 0.0.0.0 for all interfaces)"
    )
    parser.add_argument(
        "--debug", "-d",
        action="store_true",
        help="Run in debug mode"
    )

    args = parser.parse_args()

    data_folder = Path(args.data_folder)

    print("UTM Telemetry Converter")
    print("=" * 40)
    print(f"Data folder: {data_folder.absolute()}")
    print(f"Server: http://{args.host}:{args.port}")
    print("=" * 40)

    if not data_folder.exists():
        print(f"\nWarning: Data folder does not exist: {data_folder}")
        print("You can set it later via POST /folder")

    # Configure folders for the FastAPI lifespan
    if data_folder.exists():
        os.environ["UTM_DATA_FOLDER"] = str(data_folder)
    if args.output:
        os.environ["UTM_OUTPUT_FOLDER"] = str(Path(args.output))

    print("\nAPI Endpoints:")
    print("  GET  /                    - Health check")
    print("  GET  /health              - Detailed health")
    print("  GET  /folder              - Current folder info")
    print("  POST /folder              - Set data folder")
    print("  GET  /logs                - List all logs")
    print("  GET  /logs/{id}           - Get log summary")
    print("  GET  /logs/{id}/track     - Get interpreted track")
    print("  POST /logs/{id}/convert   - Write UTM file")
    print("\nStarting server...")

    import uvicorn

    uvicorn.run(
        "utmconv.main:app",
        host=args.host,
        port=args.port,
        reload=args.debug,
        log_level="info",
    )


if __name__ == "__main__":
    main()
