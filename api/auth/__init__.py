"""
Admin authentication, permissions and session tokens.
"""
