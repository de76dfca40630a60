"""reqscope: request observability pipeline for ASGI servers."""

__version__ = "0.1.0"
