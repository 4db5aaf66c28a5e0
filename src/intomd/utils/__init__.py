"""Utility helpers for into-md."""
