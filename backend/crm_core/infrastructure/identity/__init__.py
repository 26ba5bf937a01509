"""Session providers"""
