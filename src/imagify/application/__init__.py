"""
Application Layer - Use cases

Contains:
- search: canonicalizer, scorer, aggregator, query controller
"""
