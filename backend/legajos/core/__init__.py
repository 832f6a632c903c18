"""
Core Module

Configuration, logging, error taxonomy and abort signalling.
"""
