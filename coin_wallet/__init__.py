"""Coin wallet backend: users, buy orders, admin reconciliation."""
