"""
Discount cards: numbering, QR payload and lifecycle.
"""
