"""Test package for the Culture IAT.

The core tests drive the engine headlessly with a fake clock. UI smoke tests
use pygame's dummy video driver so no real window opens. Run ``pytest`` from
the project root.
"""
