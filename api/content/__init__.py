"""
CMS content: banners, blogs and FAQs.
"""
