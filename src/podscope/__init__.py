"""Podscope: query resolution, queue providers and config history for the operator dashboard."""

__version__ = "0.1.0"
