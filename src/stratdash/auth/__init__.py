"""Authentication and authorization.

Learn: One authentication path: operators log in with email/password
and receive two JWTs:
1. Access token → short-lived, sent as `Authorization: Bearer ...`
2. Refresh token → long-lived, backed by a row in the sessions table

Refresh tokens are only honored while their session row exists, so
logout revokes them immediately even though the signature stays valid.
"""
