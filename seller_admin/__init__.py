"""Seller admin backend: Walmart Marketplace token lifecycle."""
