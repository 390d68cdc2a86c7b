"""
Core map logic: entities, grouping, render sync, workspaces and persistence.
"""
