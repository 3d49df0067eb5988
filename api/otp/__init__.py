"""
One-time password sessions.
"""
