"""
Core Module
Configuration, logging and shared constants
"""
