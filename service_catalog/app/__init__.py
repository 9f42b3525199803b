"""
Catalog service application package.
"""
