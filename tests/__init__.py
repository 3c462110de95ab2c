"""
Test suite for dualauth.
"""
