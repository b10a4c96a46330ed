"""
WSGI entry point for the DNS wallet claim server.

WSGI hosts import this module and look for the ``app`` variable.  The
development server can also be started by running this file directly.

=============================================================================
DEPLOYMENT
=============================================================================

1. INSTALL
     pip install .

2. SET ENVIRONMENT VARIABLES

     SECRET_KEY=<a-long-random-string>
     DATABASE_URL=sqlite:////srv/dnsclaim/instance/dnsclaim.db
     CLAIMS_DIR=/srv/dnsclaim/claims

   Always use an absolute path for the SQLite database in production
   (four slashes: three for the protocol prefix plus one for the path).

3. POINT THE WSGI HOST AT THIS MODULE

     from wsgi import app as application  # noqa: F401

   The server needs outbound DNS (UDP/TCP port 53).  Without it every
   verification fails with DNS_TIMEOUT.

=============================================================================
LOCAL DEVELOPMENT
=============================================================================

  export SECRET_KEY=dev-only-not-for-production
  python wsgi.py

or equivalently ``dnsclaim server``.  For testing:

  pip install -e ".[test]"
  pytest tests/ -v

=============================================================================
"""

from __future__ import annotations

from dnsclaim import create_app

app = create_app()

if __name__ == "__main__":
    app.run(debug=True)
