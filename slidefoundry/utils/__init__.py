"""
SlideFoundry - Utilities
========================
"""
