"""
White-background removal package.

Exposes reusable primitives for decoding images, building a border-connected
background mask, compositing alpha, and serving the FastAPI application.
"""

