"""Wallet service application."""
