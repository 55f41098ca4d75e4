"""Shuttle ticketing API."""
