"""Test package for False Friend.

Core tests drive the deterministic modules directly with a fake clock; the
smoke test runs the pygame shell with SDL's dummy drivers so no real window
opens. Run ``pytest`` from the project root.
"""
