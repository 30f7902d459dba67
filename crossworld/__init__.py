"""
crossworld — cross-target build matrix, overridable world configuration,
and a supervised simulation harness.

Three layers:
  1. core/      — tree algebra, lazy fixed point, override builder, target matrix.
  2. world.py   — one lazily constructed package universe per matrix leaf.
  3. harness.py — run a simulation, race a sentinel scan against a timeout.
"""

__version__ = "0.1.0"
PACKAGE_NAME = "crossworld"
SCHEMA_VERSION = "0.1"
