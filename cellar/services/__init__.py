"""Cellar domain services: vessel registry, allocation ledger, blend checks and the batch lifecycle engine."""
