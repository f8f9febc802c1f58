"""Core configuration, signing and identity-server client."""
