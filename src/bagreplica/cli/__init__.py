"""
Initialize the CLI package.
"""
