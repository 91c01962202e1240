# ==== BUSINESS LOGIC PACKAGE ==== #

"""
Business logic package for domain rules and policies.

This package contains the workflow status vocabularies and transition
rules, the domain error hierarchy and document numbering.
"""
