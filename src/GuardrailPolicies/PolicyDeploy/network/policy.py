"""HTTP policy constants and defaults.

Timeout budgets and connection pooling parameters for the HTTPX client used to
talk to the policy management service.  Registration and token calls share the
short probe connect timeout; uploads get their own overall budget from
settings.
"""

# ============================================================================
# Timeout Budgets (seconds)
# ============================================================================

#: Read timeout for registration and token responses
HTTP_READ_TIMEOUT = 30.0

#: Write timeout (multipart bodies are small templates and JSON documents)
HTTP_WRITE_TIMEOUT = 15.0

#: Pool timeout (acquiring a connection while other workers upload)
HTTP_POOL_TIMEOUT = 10.0


# ============================================================================
# Connection Pooling
# ============================================================================

#: Idle keepalive expiry in seconds
KEEPALIVE_EXPIRY = 5.0


# ============================================================================
# Request Behaviour
# ============================================================================

#: Redirects are never followed; the management API answers directly
FOLLOW_REDIRECTS = False

#: HTTP/2 is not negotiated; the gateway's admin ports speak HTTP/1.1
HTTP2_ENABLED = False

USER_AGENT = "GuardrailPolicies/PolicyDeploy"
