"""Tipline API package."""
