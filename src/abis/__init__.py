"""ABI definitions for the contracts the depot exposes or calls."""

from src.abis.depot import DEPOT_ABI

__all__ = ["DEPOT_ABI"]
