"""Feature packages: users, audit, authz, setup and session."""
