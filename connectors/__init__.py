"""Platform Connectors.

This package holds the integrations with external commerce platforms.
Reconciliation code talks to the platform only through the client and
GraphQL documents exported here.

Currently implemented:
- shopify/: Shopify Admin GraphQL API (client, queries, models, OAuth)
"""
