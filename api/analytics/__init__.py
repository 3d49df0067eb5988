"""
Admin analytics and reporting.
"""
