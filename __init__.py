"""
Scout Map application.

A FastAPI-powered tool for teams to place categorized markers on a map,
organize them into parent/child groups, and keep several named maps per
team.

Author: Matthew Picone (mail@matthewpicone.com)
Date: 2026-01-12
"""
