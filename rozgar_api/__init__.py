"""RozgarAI API - job search and career guidance assistant backend."""

__version__ = "0.4.0"
