"""
imgdedup - perceptual-hash image deduplication
"""

__version__ = "0.1.0"
