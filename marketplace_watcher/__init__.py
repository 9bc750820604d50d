"""
Marketplace Watcher

Periodically searches Brazilian marketplaces (Enjoei, Mercado Livre, OLX)
for user keywords, deduplicates what was already seen and sends new-listing
and price-drop alerts through Telegram.
"""

__version__ = "0.1.0"
__author__ = "Marketplace Watcher Team"
