"""Main entry point for running expo-upgrade as a module.

Usage:
    python -m expoupgrade --help
    python -m expoupgrade upgrade ./MyApp.zip 53.0.0 --ollama-model llama3.2
"""

from __future__ import annotations

from .cli import app

if __name__ == "__main__":
    app()
