"""Test package for the dual n-back trainer.

This package contains unit tests for the stimulus chains and scoring, the
timed session engine, scripted headless runs, and UI smoke tests.  The UI
tests run headlessly using pygame's dummy video driver to avoid opening real
windows.  To run these tests, execute ``pytest`` from the project root.
"""
