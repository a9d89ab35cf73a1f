"""
Static configuration for the GBV case tracker backend
"""
