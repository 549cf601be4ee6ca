"""
Portfolio Media API Package.

Endpoints are versioned under URL prefixes; ``v1`` holds the media router.
"""
