"""Core data models and exceptions"""
