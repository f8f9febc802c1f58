"""
SSO demo proxy.

Forwards browser login calls to an external SSO identity server, signing
manual-login requests with RSA-PSS and keeping OAuth client secrets
server-side.
"""

__version__ = "1.0.0"
