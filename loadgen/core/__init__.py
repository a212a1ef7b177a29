"""Dispatch engine and the data shaping it drives."""
