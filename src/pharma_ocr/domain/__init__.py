"""Typed records and text helpers shared across the package."""
