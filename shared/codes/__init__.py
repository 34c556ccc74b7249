"""
Shared business codes used across layers (Domain/Application/Infrastructure).

Payment-specific codes and provider vocabularies live in
`shared.codes.payment_codes`.
"""
