"""
Artifact Studio
Blueprint registry.
"""
