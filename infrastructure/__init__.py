"""
Infrastructure layer - adapters to the host environment.
"""
