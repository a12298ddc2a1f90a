"""Data import utilities."""
