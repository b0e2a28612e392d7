"""
College Administration Platform
Blueprint registry.
"""
