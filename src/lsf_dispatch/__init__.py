"""Client-side job orchestration for LSF-style compute farms."""

__version__ = "0.1.0"
