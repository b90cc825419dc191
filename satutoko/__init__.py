"""
Multi-query marketplace search console.

This package holds the operator console for a shop-centric product
search: a query set, a session controller that streams per-shop results
from a scraping backend, a bounded history of past sessions, and the
web and command-line surfaces on top of them.
"""
