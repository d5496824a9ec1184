"""Authentication and authorization.

Users log in with email/password and receive a JWT access token. The same
token authenticates REST calls (Authorization: Bearer) and the live event
stream (?token= query param, since EventSource cannot set headers).
"""
