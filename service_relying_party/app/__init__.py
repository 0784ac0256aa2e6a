"""
Relying Party service package.

Exposes the FastAPI application that fronts an IBM Security Verify (ISV)
or Verify Access (ISVA) deployment for password sign-in, OTP-confirmed
sign-up and FIDO2 (WebAuthn) registration and sign-in.

- app.main: Application entrypoint that wires routes and lifecycle.
- app.config: Settings loaded once at startup.
- app.domain: Data model, orchestrator and sign-in response normalizer.
- app.adapters: ISV and ISVA platform clients and the platform selector.
- app.caching: Transactional cache for OTP sign-ups and the service token.

Design notes:
- Module import must not perform network calls. Connections are opened
  in the application lifespan.
- Use the shared/ utilities for logging, metrics and errors.
"""
