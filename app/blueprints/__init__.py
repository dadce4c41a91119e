"""
Discipline Case Platform
HTTP blueprints.
"""
