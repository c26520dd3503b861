"""
Batch OCR over a remote vision API.

Extracts text from a batch of images one at a time, rotating through a pool
of API keys whenever the current key is rate limited.
"""

__version__ = "1.0.0"
__author__ = "Batch OCR Team"
