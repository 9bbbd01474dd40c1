"""
Tests for providers app.
"""
