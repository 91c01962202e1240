# ==== SERVICES PACKAGE ==== #

"""
Services package for procurement business logic.

This package contains the workflow services behind the API: quote
negotiation, order fulfilment, invoicing and bundling, payment settlement
with bank reconciliation, messaging, administration and onboarding forms.
"""
