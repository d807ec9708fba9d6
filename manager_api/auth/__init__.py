"""
OIDC browser login for the admin API.

Design goals:
- Provider-agnostic (any OIDC provider with a user-info endpoint).
- Stateless sessions: the signed JWT is the only integrity mechanism.
- Short-lived, script-readable handoff cookie; the UI moves it to local storage.
"""
