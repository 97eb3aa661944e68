"""Concrete adapters for the interfaces in :mod:`perflink.interfaces`."""
