"""
SlideFoundry
============

Turns a web page, PDF or Markdown document into a bounded deck of typed slides.
"""

__version__ = "0.1.0"
