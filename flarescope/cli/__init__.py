"""Flarescope CLI: Typer + Rich."""
