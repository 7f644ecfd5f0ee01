# Feature components, each exposing run_* entry points over explicit ports.
