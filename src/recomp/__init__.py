"""recomp: adaptive energy-balance and body-composition estimation."""

__version__ = "0.1.0"
