"""
Async dashboard client: Launch page controller and Creative Studio insights card.
"""
