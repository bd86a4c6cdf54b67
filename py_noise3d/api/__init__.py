"""
HTTP service for running volume bakes as background jobs.
"""
