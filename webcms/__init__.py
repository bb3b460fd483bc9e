"""
webcms: website content tree engine.
"""
