"""Generators — files rendered from a recipe."""
