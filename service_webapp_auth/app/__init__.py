"""
Auth Service package for the Mini App Auth Bridge.

This package exposes the FastAPI application that turns a Telegram Mini App
launch into a Firebase custom token:

- app.main: Application entrypoint that wires routes and lifecycle.
- app.validation: initData parsing, signature checks and user extraction.
- app.provisioning: Idempotent account creation in the identity provider.
- app.authenticator: The verify, provision and issue pipeline.
- app.providers: Identity provider adapters (Firebase, in-memory).

Design notes:
- Keep the package import side-effects minimal; module import must not
  perform network calls or initialize the Firebase SDK.
- Use the shared/ utilities for logging, metrics, config and errors.
- Treat this package as stateless; accounts live in the identity provider.
"""
