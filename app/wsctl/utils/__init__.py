"""Utility helpers for wsctl."""
