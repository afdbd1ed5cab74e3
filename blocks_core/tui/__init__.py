"""Textual front end for blocks."""
