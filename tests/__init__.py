"""Metadata console test suite.

- forms/: selection state, resolver, mode policy, reconciler, normalizer,
  metadata providers, settings, sessions and the command line
"""
