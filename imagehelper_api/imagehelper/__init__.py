"""
ImageHelper

Download an image, apply one transformation and get the result back as
bytes, base64 and an uploadable file.
"""

__version__ = "1.0.0"
