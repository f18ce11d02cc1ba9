"""techno.dog agents: multi-model extraction and consensus pipeline."""

__version__ = "0.1.0"
