"""File-backed cache store and rate limiting"""
