"""
CLI package for Corsgate.
"""
