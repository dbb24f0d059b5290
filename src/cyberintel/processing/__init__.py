"""Parsing, cache orchestration, enrichment and aggregation"""
