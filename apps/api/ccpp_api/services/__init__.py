"""Workflows composed from the ledger and the perceptual matcher."""
