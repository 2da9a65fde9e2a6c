"""Core building blocks: exceptions, settings and schemas."""
