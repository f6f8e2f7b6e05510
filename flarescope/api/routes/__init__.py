"""Dashboard API routers, one per binding type plus health, bindings and logs."""
