"""Drive sprint stories through their workflow lifecycle with an AI agent CLI."""

__version__ = "0.3.0"
