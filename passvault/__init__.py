"""
PassVault Password Store
Copyright (c) 2025

SECURITY NOTICE:
Secrets are encrypted with a single static AES-128 key supplied by a key
provider. The built-in default key ships with the application and protects
only against casual inspection of the database file. Configure a private key
through the environment or the OS keyring for anything else.
"""

__version__ = "1.0.0"
