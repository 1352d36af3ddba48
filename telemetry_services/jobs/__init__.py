"""Runners de línea de comandos."""
