"""
Suppliers module

Supplier list, overview and detail. All supplier figures are derived from
the supplier's products and their delivery lines.
"""
