"""Core utilities and shared infrastructure.

- config: Configuration loading and validation
- constants: Timeouts, poll intervals, endpoint defaults
- exceptions: Shared exception taxonomy
- ingress: Durable Functions payload normalisation
"""
