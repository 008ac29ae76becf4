"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~devauth.exceptions.DevauthError` subclass.
Wrapper scripts and agents can inspect the exit code to tell "a human must
sign in" apart from a real failure without parsing stderr.

Example::

    $ devauth token
    $ echo $?
    3   # EXIT_AUTH_REQUIRED -- visit the verification URI and enter the code
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred, or configuration is invalid."""

EXIT_AUTH_REQUIRED = 3
"""A user must complete the device-code sign-in before a token is available."""

EXIT_AUTH_SERVER_ERROR = 5
"""The identity provider rejected a request or could not be reached."""

EXIT_INTERRUPTED = 130
"""The command was cancelled with Ctrl-C."""
