"""
Bearer-token authentication.

token_validator: verifies HS256 tokens issued by an external identity provider.
dependencies:    turns the Authorization header into a Principal for routes.
"""
