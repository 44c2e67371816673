"""Entry point for running the server as a module

Usage:
    threadkit-server
    threadkit-server --port 8080
    python -m server --port 8080
"""

import sys

import uvicorn

from .app import app


def main():
    """Run the server."""
    port = 8000
    args = sys.argv[1:]
    for i, arg in enumerate(args):
        if arg == "--port" and i + 1 < len(args):
            port = int(args[i + 1])

    uvicorn.run(app, host="0.0.0.0", port=port)


if __name__ == "__main__":
    main()
