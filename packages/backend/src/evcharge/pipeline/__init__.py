"""Standalone capture process — watchers + stats job without the HTTP API.

Learn: Running capture in its own process gives crash isolation: if it
dies, the API and the browser gateway keep serving. Any process that
subscribes to the broadcast channel (the API's gateway) picks up what
this process publishes.
"""
