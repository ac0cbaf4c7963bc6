"""Release-build orchestrator for voicevox_core."""

__version__ = "0.1.0"
