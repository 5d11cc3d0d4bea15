"""
SlideFoundry - API Routes
=========================
"""
