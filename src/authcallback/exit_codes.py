"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~authcallback.exceptions.AuthCallbackError` subclass.
The CLI exits with the code of the error it caught so that shell wrappers can
tell a misconfigured provider from an unreachable one.
"""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""Invalid arguments, or a provider file that failed ``providers check``."""

EXIT_CALLBACK_FAILURE = 3
"""The identity provider rejected the flow or the redirect failed validation."""

EXIT_CONFIGURATION_ERROR = 4
"""Provider or authorization-server configuration is insufficient."""

EXIT_TOKEN_FAILURE = 5
"""The code-for-token exchange failed."""

EXIT_PROFILE_FAILURE = 6
"""The user profile could not be obtained or mapped."""
