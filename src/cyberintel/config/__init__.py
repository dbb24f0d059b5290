"""Configuration management"""
