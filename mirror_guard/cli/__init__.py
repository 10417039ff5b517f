"""
CLI command modules — registered on the group in mirror_guard.main.
"""
