"""Ingestion layer.

Observations from the balance, reward and price feeds enter here and are
turned into series points by the accumulators.
"""
