"""Marketplace storefront delivery pricing and checkout core."""
