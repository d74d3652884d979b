"""Podscope command line interface."""
