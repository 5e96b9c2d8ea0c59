"""
fetchgate - Policy-gated HTTP request gateway.

fetchgate executes outbound HTTP requests on behalf of a caller only when an
ordered set of policies approves them. Policies may also rewrite the request
(headers, body, query parameters) before it is sent.
It provides:
- Deny-by-default authorization with first-match-wins URL globs
- Declarative policy files with hot reload
- A JSON API and CLI for executing and inspecting requests

Example usage:
    $ FETCHGATE_CONFIG=./policies fetchgate serve
    $ fetchgate policies ./policies
    $ fetchgate fetch https://httpbin.org/get --config ./policies
"""

__version__ = "0.1.0"
__author__ = "fetchgate Contributors"

__all__ = [
    "__version__",
    "__author__",
]
