"""Concrete adapters for the interfaces in :mod:`docvault.interfaces`."""
