"""
Business Registry Module.

Directory of businesses and their automated-analysis flag.
"""
