"""
Card transactions.
"""
