"""Canned cluster objects for tests."""
