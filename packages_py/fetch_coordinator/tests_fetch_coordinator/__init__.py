"""
Tests for fetch_coordinator.
"""
