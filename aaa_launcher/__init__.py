"""AAA Engine Launcher — resumable install/update orchestrator."""

__version__ = "1.0.0"
