"""
Carrier Rate Gateway

Canonical multi-carrier shipping rate quotes: one request shape in, one
response shape out, whatever the carriers speak on the wire.
"""
__version__ = "1.0.0"
