"""CyberIntel command line interface"""
