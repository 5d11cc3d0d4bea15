"""
SlideFoundry - HTTP API
=======================
"""
