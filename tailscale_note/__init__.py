"""
Tailscale device note application.

This package provides:
- Tailscale API client (device inventory -> node summaries)
- Markdown note rendering and change-only write-back
- Vault (filesystem) document store and JSON settings store
- Interval scheduler and command line entry point
"""
