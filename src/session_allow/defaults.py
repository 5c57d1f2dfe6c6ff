"""Default settings and an annotated example configuration.

The defaults allow sessions everywhere and let a login cookie override any
rule, which matches the behavior of a site without session rules.
"""

from .config import Configuration

DEFAULT_CONFIG = Configuration()

EXAMPLE_CONFIG = """\
# =============================================================================
# Session allow configuration
# =============================================================================

# Allow sessions by default? When true, deny_hosts and deny_path_rules apply.
# When false, allow_hosts and allow_path_rules apply instead.
default_allow: true

# Session always active when a login cookie is present?
login_overrides_allow: true

# Hosts the site answers to (used to validate the host lists below)
known_hosts:
  - www.example.com
  - api.example.com

# Disallow sessions for these hosts (default_allow: true)
deny_hosts:
  - api.example.com

# Disallow sessions when the request path matches (default_allow: true).
# One rule per line. Literal paths match exactly, * and + are wildcards
# (/foo/bar/*, */foo/bar/, */foo/*), and a line starting with ! (or #, %, @)
# is a regular expression, e.g. !^/foo/(bar|baz)/?$!
# Rules should exclude any subdirectory that the site runs from.
deny_path_rules: |
  /feeds/*
  /sitemap.xml
  !^/api/v[0-9]+/!

# Allow sessions when the request path matches (default_allow: false).
# The admin URL is always allowed.
allow_path_rules: |
  /login/
  /account/*

# Allow sessions for these hosts (default_allow: false)
allow_hosts: []

# Supplied by the hosting application
admin_path_prefix: /admin/
protected_files_path_prefix: /site/assets/files/
secure_files_enabled: false
root_url: /
"""


def get_defaults() -> Configuration:
    """Get the default configuration."""
    return DEFAULT_CONFIG


def get_example() -> str:
    """Get the annotated example configuration as YAML text."""
    return EXAMPLE_CONFIG
