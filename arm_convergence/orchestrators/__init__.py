"""Durable Functions orchestrator functions.

- convergence: Poll one resource with durable timers until it converges,
  times out or fails
"""
