"""
Products module

Product list, overview dashboard, per-product analytics and the stock
ledger. Stock on hand is reconstructed from deliveries, purchases,
adjustments and draws.
"""
