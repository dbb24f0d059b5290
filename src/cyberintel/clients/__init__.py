"""Upstream provider API clients"""
