"""Shared integrations used by the commerce app."""
