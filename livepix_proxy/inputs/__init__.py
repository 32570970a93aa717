"""livepix_proxy.inputs package

Adapters that talk to external services on behalf of the proxy.

Modules
-------
* livepix – OAuth2 token exchange and the paginated messages listing of the
  LivePix donation platform."""
