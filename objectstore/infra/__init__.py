"""Infrastructure: provider transports, secrets, logging, metrics and tracing."""
