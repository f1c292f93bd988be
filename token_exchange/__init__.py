"""Exchange GitLab logins for personal access tokens stored as credentials."""

__version__ = "0.1.0"
