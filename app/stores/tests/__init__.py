"""
Tests for stores app.

Usage:
    pytest stores/tests/
"""
