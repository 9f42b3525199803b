"""
Vara catalog service package.
"""
