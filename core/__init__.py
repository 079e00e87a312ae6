"""Core module - platform-neutral service plumbing.

This module contains configuration, observability (logging, metrics) and
credential security. It knows nothing about material reconciliation.

Shopify-specific logic belongs in /connectors/; reconciliation logic in
/reconciliation/.
"""

__version__ = "1.0.0"
