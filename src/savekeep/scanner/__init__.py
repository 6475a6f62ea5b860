"""Scanner — filesystem walker, registry access, ignore filters, redirects, engine."""
