"""Expo SDK upgrade automation with LLM-assisted expo-doctor repair."""

__version__ = "0.1.0"
