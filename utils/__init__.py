"""
Configuration, logging, constants and failure tracking.
"""
