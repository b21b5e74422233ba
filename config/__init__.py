"""
config — environment-driven settings.
"""
