"""
Partner shops: registration, approval workflow and search.
"""
