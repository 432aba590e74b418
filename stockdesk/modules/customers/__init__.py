"""
Customers module

Customer list, overview dashboard and per-customer analytics:
- activity and spend trends over the last months
- spend per product category and order-value distribution
- RFM (recency, frequency, monetary) metrics
"""
