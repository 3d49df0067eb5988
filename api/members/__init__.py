"""
Member self-service API (signup, profile, card, OTP).
"""
