"""
CareerMe resume wizard backend.
Record store access, text generation and the JSON API the wizard pages call.
"""

VERSION = "1.0.0"
