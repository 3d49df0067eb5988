"""
Discount rules, tiers and discount calculation.
"""
