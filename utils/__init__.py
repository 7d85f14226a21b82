"""
Claim Racer collaborators: key derivation, outcome reporting, pre-flight checks
"""
