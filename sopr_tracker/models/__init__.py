"""
Data models for the SOPR tracker system.
"""
