"""
SlideFoundry - Services
=======================

Input resolution, extraction, deck generation and request hygiene.
"""
