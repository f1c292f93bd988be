"""CLI commands for the token exchange.

The entry point ``token-exchange`` lives in ``token_exchange.main``; this
package holds the command groups for the credential store
(``credentials``) and for keyring secrets used by the configuration
(``secrets``).
"""
