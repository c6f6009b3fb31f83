"""Auth core services and the credential store adapter."""
